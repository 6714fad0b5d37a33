"""Uniform ``{status, data|message}`` envelope and error handlers."""

from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from shopcore.services.errors import ExternalServiceFailure, ShopError

logger = logging.getLogger(__name__)


def ok(data=None, message: str | None = None, status: int = 200):
    body = {"status": "success"}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def fail(message: str, status: int, **extra):
    body = {"status": "error", "message": message}
    body.update(extra)
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ShopError)
    def handle_shop_error(exc: ShopError):
        if isinstance(exc, ExternalServiceFailure):
            # gateway internals stay in the log
            logger.error("external service failure: %s %r", exc.code, getattr(exc, "detail", None))
            return fail(exc.default_message, exc.http_status, code=exc.code)
        extra = {"code": exc.code}
        if getattr(exc, "errors", None):
            extra["errors"] = exc.errors
        return fail(exc.message, exc.http_status, **extra)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return fail(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("unhandled error")
        return fail("Server Error", 500)
