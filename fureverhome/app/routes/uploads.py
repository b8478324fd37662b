"""
routes/uploads.py — Image upload route handlers.

Storage rules (image types only, size and count limits, naming) live in
services/upload_service.py. This module only picks the inputs out of the
request and passes UPLOAD_FOLDER and the limits from app config.

Endpoints (url_prefix=/api/upload):
  POST /image            → 201  multipart field "image"
  POST /images           → 201  multipart field "images" (repeated)
  POST /image-base64     → 201  JSON {"image": "<base64 or data URL>"}
  POST /images-base64    → 201  JSON {"images": [...]}

Stored files are served by GET /uploads/<name>, registered on the app.
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from fureverhome.app.middleware.auth_middleware import require_auth
from fureverhome.app.routes.common import json_body, mutation
from fureverhome.app.services import upload_service

uploads_bp = Blueprint("uploads", __name__)


def _storage() -> tuple[str, int]:
    config = current_app.config
    return config["UPLOAD_FOLDER"], config["MAX_UPLOAD_BYTES"]


@uploads_bp.route("/image", methods=["POST"])
@require_auth
def upload_image():
    folder, max_bytes = _storage()
    url = upload_service.save_image(request.files.get("image"), folder, max_bytes)
    return jsonify(mutation("Image uploaded successfully", url=url)), 201


@uploads_bp.route("/images", methods=["POST"])
@require_auth
def upload_images():
    folder, max_bytes = _storage()
    urls = upload_service.save_images(
        request.files.getlist("images"),
        folder,
        max_bytes,
        current_app.config["MAX_UPLOAD_FILES"],
    )
    return jsonify(mutation("Images uploaded successfully", urls=urls)), 201


@uploads_bp.route("/image-base64", methods=["POST"])
@require_auth
def upload_image_base64():
    folder, max_bytes = _storage()
    url = upload_service.save_base64_image(json_body().get("image"), folder, max_bytes)
    return jsonify(mutation("Image uploaded successfully", url=url)), 201


@uploads_bp.route("/images-base64", methods=["POST"])
@require_auth
def upload_images_base64():
    folder, max_bytes = _storage()
    urls = upload_service.save_base64_images(
        json_body().get("images"),
        folder,
        max_bytes,
        current_app.config["MAX_UPLOAD_FILES"],
    )
    return jsonify(mutation("Images uploaded successfully", urls=urls)), 201
