"""
services/upload_service.py — Image storage under UPLOAD_FOLDER.

Accepts multipart files (werkzeug FileStorage) or base64 strings, with or
without a `data:image/<type>;base64,` prefix. Only image content is stored;
each image is limited to MAX_UPLOAD_BYTES and one request to
MAX_UPLOAD_FILES images. A batch is validated in full before any file is
written, so a rejected batch leaves nothing behind.

Stored names are `img_<uuid4 hex><ext>` and are returned as `/uploads/<name>`.
The extension always comes from the declared image type (jpeg, png, gif,
webp or bmp), never from the client filename.

Layer rules:
  - No Flask imports. Folder and limits are passed in by the route.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import uuid

from werkzeug.datastructures import FileStorage
from werkzeug.security import safe_join

from fureverhome.app.errors import ErrorCode, NotFound, ValidationFailed


logger = logging.getLogger(__name__)


URL_PREFIX = "/uploads/"

_DATA_URL = re.compile(r"^data:image/(?P<subtype>[\w.+-]+);base64,", re.IGNORECASE)

_EXTENSIONS = {
    "jpeg": ".jpg",
    "jpg": ".jpg",
    "png": ".png",
    "gif": ".gif",
    "webp": ".webp",
    "bmp": ".bmp",
}


# ── Private helpers ────────────────────────────────────────────────────────

def _new_name(ext: str) -> str:
    return f"img_{uuid.uuid4().hex}{ext}"


def _check_size(content: bytes, max_bytes: int) -> None:
    if not content:
        raise ValidationFailed(ErrorCode.INVALID_IMAGE, "Image is empty.")
    if len(content) > max_bytes:
        raise ValidationFailed(
            ErrorCode.INVALID_IMAGE,
            f"Image exceeds the {max_bytes // (1024 * 1024)}MB limit.",
        )


def _check_count(count: int, max_files: int) -> None:
    if count == 0:
        raise ValidationFailed(ErrorCode.NO_FILE, "No images provided.")
    if count > max_files:
        raise ValidationFailed(
            ErrorCode.INVALID_FIELD,
            f"At most {max_files} images can be uploaded at once.",
        )


def _extension_for(subtype: str) -> str:
    """Stored extension for an image subtype; the client filename is never used."""
    ext = _EXTENSIONS.get(subtype.lower())
    if ext is None:
        raise ValidationFailed(ErrorCode.INVALID_IMAGE, "Only image files are allowed.")
    return ext


def _read_file(file: FileStorage | None, max_bytes: int) -> tuple[bytes, str]:
    """Returns (content, extension) for an uploaded image file."""
    if file is None or not file.filename:
        raise ValidationFailed(ErrorCode.NO_FILE, "No file uploaded.")
    kind, _, subtype = (file.mimetype or "").partition("/")
    if kind != "image":
        raise ValidationFailed(ErrorCode.INVALID_IMAGE, "Only image files are allowed.")
    ext = _extension_for(subtype)

    content = file.read()
    _check_size(content, max_bytes)
    return content, ext


def _decode_base64(data: str, max_bytes: int) -> tuple[bytes, str]:
    """Returns (content, extension) for a base64 image string."""
    if not data or not isinstance(data, str):
        raise ValidationFailed(ErrorCode.NO_FILE, "No image data provided.")

    ext = ".jpg"
    match = _DATA_URL.match(data)
    if match:
        ext = _extension_for(match.group("subtype"))
        data = data[match.end():]
    elif data.startswith("data:"):
        raise ValidationFailed(ErrorCode.INVALID_IMAGE, "Only image data is allowed.")

    try:
        content = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValidationFailed(ErrorCode.INVALID_IMAGE, "Image data is not valid base64.") from exc

    _check_size(content, max_bytes)
    return content, ext


def _write(folder: str, content: bytes, ext: str) -> str:
    os.makedirs(folder, exist_ok=True)
    name = _new_name(ext)
    with open(os.path.join(folder, name), "wb") as fh:
        fh.write(content)
    logger.info("Stored upload %s (%s bytes)", name, len(content))
    return URL_PREFIX + name


# ── Public service functions ───────────────────────────────────────────────

def save_image(file: FileStorage | None, folder: str, max_bytes: int) -> str:
    content, ext = _read_file(file, max_bytes)
    return _write(folder, content, ext)


def save_images(
        files: list[FileStorage],
        folder: str,
        max_bytes: int,
        max_files: int,
) -> list[str]:
    files = [f for f in files if f and f.filename]
    _check_count(len(files), max_files)
    decoded = [_read_file(f, max_bytes) for f in files]
    return [_write(folder, content, ext) for content, ext in decoded]


def save_base64_image(data: str | None, folder: str, max_bytes: int) -> str:
    content, ext = _decode_base64(data, max_bytes)
    return _write(folder, content, ext)


def save_base64_images(
        items: list | None,
        folder: str,
        max_bytes: int,
        max_files: int,
) -> list[str]:
    """Empty strings in `items` are skipped."""
    if not isinstance(items, list):
        raise ValidationFailed(
            ErrorCode.NO_FILE,
            "No images data provided or invalid format.",
            field="images",
        )
    items = [item for item in items if item]
    _check_count(len(items), max_files)
    decoded = [_decode_base64(item, max_bytes) for item in items]
    return [_write(folder, content, ext) for content, ext in decoded]


def resolve_upload(name: str, folder: str) -> str:
    """
    Absolute path of a stored upload.

    Raises NotFound(FILE_NOT_FOUND) for unknown names and for names that
    would escape the upload folder.
    """
    path = safe_join(os.path.abspath(folder), name)
    if path is None or not os.path.isfile(path):
        raise NotFound(ErrorCode.FILE_NOT_FOUND, f"File {name} does not exist.")
    return path
