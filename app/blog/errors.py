from __future__ import annotations

import logging

from flask import Flask, current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

from app.blog.db import rollback_db_session


class ValidationFailed(HTTPException):
    """400 carrying the list of payload problems."""

    code = 400

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__(description="; ".join(errors))


def json_error(message: str, status: int, **extra):
    """JSON error body `{"message": ...}`; every error response is logged here."""
    if status >= 500:
        level = logging.ERROR
    elif status in (401, 403):
        level = logging.WARNING
    else:
        level = logging.INFO
    current_app.logger.log(
        level,
        "%s %s -> %s: %s (request_id=%s)",
        request.method,
        request.path,
        status,
        message,
        getattr(g, "request_id", None),
    )
    body = {"message": message}
    body.update(extra)
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationFailed)
    def _validation_failed(e: ValidationFailed):
        return json_error(e.description or "Invalid request.", 400, errors=e.errors)

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return json_error(e.description or e.name, e.code or 500)

    @app.errorhandler(Exception)
    def _err_500(e: Exception):
        # Ensure stack trace shows in the logs.
        rollback_db_session()
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"message": "Internal server error"}), 500
