"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - Alembic to import the models without starting the server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Initialise SQLAlchemy via init_app() and set the log level
  3. Create the per-process ViewDebouncer (app.extensions["view_debouncer"])
  4. Register all route blueprints under /api, plus /health and /uploads/<name>
  5. Register global error handlers (AppError / ValidationError /
     HTTPException → JSON, Exception → 500)
  6. Register a custom JSON provider to serialise Decimal as string
     (adoption fees keep their two decimal places on the wire)
  7. Register the `flask reconcile-memberships` CLI command

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before Alembic inspects it. They are not used
  directly here — the import side-effect is sufficient.
"""

from __future__ import annotations

import traceback
from decimal import Decimal

import click
from flask import Flask, current_app, jsonify, request, send_file
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from fureverhome.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Flask's default JSON encoder does not handle Decimal.

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Extends Flask's default JSON provider to serialise Decimal as str.

    Example: Decimal("10.50") → "10.50" (not 10.5 or 10.500000001)
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Resolved via config_by_name in config.py.
                     Defaults to "development".
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    # Service loggers are children of app.logger ("fureverhome.app.services.*").
    app.logger.setLevel(app.config["LOG_LEVEL"])

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from fureverhome.app.extensions import db
    db.init_app(app)

    from fureverhome.app.services.view_debounce import ViewDebouncer
    app.extensions["view_debouncer"] = ViewDebouncer(
        window_seconds=app.config["VIEW_DEBOUNCE_SECONDS"],
        max_entries=app.config["VIEW_DEBOUNCE_MAX_ENTRIES"],
    )

    # ── Model registration ─────────────────────────────────────────────────
    # Import all models so that SQLAlchemy's MetaData is populated.
    with app.app_context():
        from fureverhome.app.models import (  # noqa: F401
            group,
            membership,
            pet,
            post,
            refresh_token,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)
    _register_commands(app)

    return app


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api prefix.

    The url_prefix is set here so individual route files only specify
    the path relative to their resource (e.g. "" and "/<int:id>").
    """
    from fureverhome.app.routes.admin import admin_bp
    from fureverhome.app.routes.auth import auth_bp
    from fureverhome.app.routes.groups import groups_bp
    from fureverhome.app.routes.pets import pets_bp
    from fureverhome.app.routes.posts import posts_bp
    from fureverhome.app.routes.uploads import uploads_bp
    from fureverhome.app.services import upload_service

    app.register_blueprint(auth_bp,    url_prefix="/api/auth")
    app.register_blueprint(pets_bp,    url_prefix="/api/pets")
    app.register_blueprint(groups_bp,  url_prefix="/api/groups")
    # posts_bp shares /api/groups: it owns /groups/<id>/posts as well as
    # /groups/posts/<id>.
    app.register_blueprint(posts_bp,   url_prefix="/api/groups")
    app.register_blueprint(admin_bp,   url_prefix="/api/admin")
    app.register_blueprint(uploads_bp, url_prefix="/api/upload")

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok"}), 200

    @app.route("/uploads/<path:name>", methods=["GET"])
    def serve_upload(name: str):
        path = upload_service.resolve_upload(name, current_app.config["UPLOAD_FOLDER"])
        return send_file(path)


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → {message, code[, field, fields]} with its HTTP status
      ValidationError → 400 {message, code, fields, errors}; code is
                        MISSING_FIELD when a required field is absent,
                        INVALID_FIELD otherwise
      HTTPException   → werkzeug errors (404 route, 405, 413) as JSON
      Exception       → INTERNAL_ERROR (500); full traceback logged

    Stack traces never leave the server.
    """
    from fureverhome.app.errors import AppError, ErrorCode
    from fureverhome.app.extensions import db

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error body.

        Routes never catch AppError — they let it propagate here.
        """
        db.session.rollback()
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        messages = error.messages if isinstance(error.messages, dict) else {"_schema": error.messages}
        fields = sorted(name for name in messages if name != "_schema")

        flat = list(_iter_messages(messages))
        missing = any(m.startswith("Missing data for required field") for m in flat)

        body = {
            "message": flat[0] if flat else "Invalid input.",
            "code": ErrorCode.MISSING_FIELD if missing else ErrorCode.INVALID_FIELD,
            "fields": fields,
            "errors": messages,
        }
        if len(fields) == 1:
            body["field"] = fields[0]
        return jsonify(body), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        code = (error.name or "HTTP error").upper().replace(" ", "_")
        return jsonify({"message": error.description, "code": code}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.

        The full traceback is logged to the application logger.
        """
        db.session.rollback()
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "message": "An unexpected error occurred. Please try again later.",
            "code": ErrorCode.INTERNAL_ERROR,
        }), 500


def _iter_messages(messages):
    """Yields every leaf message of a marshmallow messages structure, in order."""
    if isinstance(messages, dict):
        for value in messages.values():
            yield from _iter_messages(value)
    elif isinstance(messages, (list, tuple)):
        for value in messages:
            yield from _iter_messages(value)
    else:
        yield str(messages)


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            # Reflect origin when present so bearer-auth requests from local
            # dev servers are accepted by browsers.
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response


def _register_commands(app: Flask) -> None:

    @app.cli.command("reconcile-memberships")
    def reconcile_memberships_command():
        """Rebuild user membership mirrors from the group rosters."""
        from fureverhome.app.extensions import db
        from fureverhome.app.services import group_service

        summary = group_service.reconcile_memberships(db.session)
        db.session.commit()
        click.echo(
            "created={created} updated={updated} removed={removed} "
            "counts_fixed={counts_fixed}".format(**summary)
        )
