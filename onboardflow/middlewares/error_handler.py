from __future__ import annotations

import logging
from typing import Any

from flask import Flask, g, jsonify
from werkzeug.exceptions import HTTPException

from onboardflow.utils.errors import ApiError

logger = logging.getLogger("onboardflow.errors")


def _envelope(code: str, message: str, details: Any = None) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": False, "error": {"code": code, "message": message, "details": details}}
    if getattr(g, "request_id", None):
        payload["request_id"] = g.request_id
    return payload


def init_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(err: ApiError):
        if err.status >= 500:
            logger.error("code=%s message=%s request_id=%s", err.code, err.message, getattr(g, "request_id", ""))
        return jsonify(_envelope(err.code, err.message, err.details)), err.status

    @app.errorhandler(HTTPException)
    def _http_error(err: HTTPException):
        status = int(err.code or 500)
        return jsonify(_envelope(f"HTTP_{status}", str(err.description or "HTTP error"))), status

    @app.errorhandler(Exception)
    def _unhandled(err: Exception):
        logger.exception("Unhandled exception request_id=%s", getattr(g, "request_id", ""))
        return jsonify(_envelope("INTERNAL", "Unexpected error")), 500
