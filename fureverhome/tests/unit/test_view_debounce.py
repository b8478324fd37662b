"""
tests/unit/test_view_debounce.py — Per-(pet, address) view debounce window.

A fake clock drives the TTL so no test sleeps.
"""

from __future__ import annotations

from fureverhome.app.services.view_debounce import ViewDebouncer


class FakeClock:

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_first_view_counts_and_repeat_inside_window_does_not():
    clock = FakeClock()
    debouncer = ViewDebouncer(window_seconds=5, timer=clock)

    assert debouncer.should_count(1, "10.0.0.1") is True
    clock.now += 4
    assert debouncer.should_count(1, "10.0.0.1") is False


def test_view_counts_again_after_window():
    clock = FakeClock()
    debouncer = ViewDebouncer(window_seconds=5, timer=clock)

    debouncer.should_count(1, "10.0.0.1")
    clock.now += 5.5
    assert debouncer.should_count(1, "10.0.0.1") is True


def test_repeat_views_do_not_extend_the_window():
    clock = FakeClock()
    debouncer = ViewDebouncer(window_seconds=5, timer=clock)

    debouncer.should_count(1, "10.0.0.1")
    clock.now += 3
    debouncer.should_count(1, "10.0.0.1")
    clock.now += 3
    assert debouncer.should_count(1, "10.0.0.1") is True


def test_keys_are_per_pet_and_per_address():
    debouncer = ViewDebouncer(window_seconds=5, timer=FakeClock())

    assert debouncer.should_count(1, "10.0.0.1") is True
    assert debouncer.should_count(2, "10.0.0.1") is True
    assert debouncer.should_count(1, "10.0.0.2") is True


def test_size_is_bounded():
    debouncer = ViewDebouncer(window_seconds=60, max_entries=3, timer=FakeClock())

    for pet_id in range(10):
        debouncer.should_count(pet_id, "10.0.0.1")

    assert len(debouncer) == 3


def test_missing_address_is_still_debounced():
    debouncer = ViewDebouncer(window_seconds=5, timer=FakeClock())

    assert debouncer.should_count(1, None) is True
    assert debouncer.should_count(1, None) is False


def test_clear_forgets_every_key():
    debouncer = ViewDebouncer(window_seconds=5, timer=FakeClock())
    debouncer.should_count(1, "10.0.0.1")

    debouncer.clear()

    assert len(debouncer) == 0
    assert debouncer.should_count(1, "10.0.0.1") is True
