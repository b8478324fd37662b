"""
tests/integration/test_uploads.py — Integration tests for image uploads.

Endpoints covered:
  POST /upload/image          → 201  multipart "image"
  POST /upload/images         → 201  multipart "images"
  POST /upload/image-base64   → 201
  POST /upload/images-base64  → 201
  GET  /uploads/<name>        → 200  stored file

Files land in the session's temporary UPLOAD_FOLDER (see conftest.py).
"""

from __future__ import annotations

import base64
import io

from .conftest import auth_headers, register

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


def _png(name: str = "cat.png"):
    return (io.BytesIO(PNG_BYTES), name, "image/png")


class TestMultipartUpload:

    def test_single_image_is_stored_and_served(self, client):
        alice = register(client, "alice")

        resp = client.post(
            "/api/upload/image",
            data={"image": _png()},
            content_type="multipart/form-data",
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 201
        url = resp.get_json()["url"]
        assert url.startswith("/uploads/img_")
        assert url.endswith(".png")

        served = client.get(url)
        assert served.status_code == 200
        assert served.data == PNG_BYTES
        served.close()

    def test_multiple_images(self, client):
        alice = register(client, "alice")

        resp = client.post(
            "/api/upload/images",
            data={"images": [_png("a.png"), _png("b.png")]},
            content_type="multipart/form-data",
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 201
        urls = resp.get_json()["urls"]
        assert len(urls) == 2
        assert len(set(urls)) == 2

    def test_missing_file_is_400(self, client):
        alice = register(client, "alice")

        resp = client.post(
            "/api/upload/image",
            data={},
            content_type="multipart/form-data",
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "NO_FILE"

    def test_non_image_is_400(self, client):
        alice = register(client, "alice")

        resp = client.post(
            "/api/upload/image",
            data={"image": (io.BytesIO(b"hello"), "notes.txt", "text/plain")},
            content_type="multipart/form-data",
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_IMAGE"

    def test_html_filename_is_stored_as_image(self, client):
        alice = register(client, "alice")
        page = b"<script>alert(document.cookie)</script>"

        resp = client.post(
            "/api/upload/image",
            data={"image": (io.BytesIO(page), "evil.html", "image/png")},
            content_type="multipart/form-data",
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 201
        url = resp.get_json()["url"]
        assert url.endswith(".png")
        served = client.get(url)
        assert served.mimetype == "image/png"
        served.close()

    def test_requires_auth(self, client):
        resp = client.post(
            "/api/upload/image",
            data={"image": _png()},
            content_type="multipart/form-data",
        )
        assert resp.status_code == 401


class TestBase64Upload:

    def test_data_url_upload(self, client):
        alice = register(client, "alice")
        data = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()

        resp = client.post(
            "/api/upload/image-base64",
            json={"image": data},
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 201
        url = resp.get_json()["url"]
        assert url.endswith(".png")
        served = client.get(url)
        assert served.data == PNG_BYTES
        served.close()

    def test_batch_upload(self, client):
        alice = register(client, "alice")
        encoded = base64.b64encode(PNG_BYTES).decode()

        resp = client.post(
            "/api/upload/images-base64",
            json={"images": [encoded, encoded]},
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 201
        assert len(resp.get_json()["urls"]) == 2

    def test_invalid_base64_is_400(self, client):
        alice = register(client, "alice")

        resp = client.post(
            "/api/upload/image-base64",
            json={"image": "not base64!!"},
            headers=auth_headers(alice["access_token"]),
        )

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "INVALID_IMAGE"


class TestServeUploads:

    def test_unknown_file_is_404(self, client):
        resp = client.get("/uploads/img_missing.png")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "FILE_NOT_FOUND"
