"""HTTP error taxonomy and JSON error responses for the API."""

from __future__ import annotations

from typing import Any, Tuple, TypeVar

from flask import Flask, current_app, jsonify, request
from werkzeug import exceptions

T = TypeVar("T")

GENERIC_FAILURE_MESSAGE = "Internal server error."


class ValidationError(exceptions.BadRequest):
    description = "Invalid request."


class Unauthenticated(exceptions.Unauthorized):
    description = "Login required."


class InvalidCredentials(exceptions.Unauthorized):
    # Unknown usernames and wrong passwords share this message.
    description = "Invalid username or password."


class Forbidden(exceptions.Forbidden):
    description = "Permission denied."


class AccountDisabled(exceptions.Forbidden):
    description = "This account has been disabled."


class NotFound(exceptions.NotFound):
    description = "Not found."


class Conflict(exceptions.Conflict):
    description = "Already exists."


class InternalError(exceptions.InternalServerError):
    description = GENERIC_FAILURE_MESSAGE


def unwrap_store_result(result: Tuple[T | None, str | None], message: str) -> T | None:
    """Return the data half of a ``(data, error)`` store result.

    A store error is logged with its detail and re-raised as an
    :class:`InternalError` carrying only ``message``.
    """

    data, error = result
    if error:
        current_app.logger.error("%s %s", message, error)
        raise InternalError(message)
    return data


def _wants_json() -> bool:
    return request.path.startswith("/api/")


def _error_body(message: str) -> dict[str, Any]:
    return {"ok": False, "msg": message}


def register_error_handlers(app: Flask) -> None:
    """Render API errors as ``{"ok": false, "msg": ...}`` bodies."""

    @app.errorhandler(exceptions.HTTPException)
    def handle_http_exception(exc: exceptions.HTTPException):
        if not _wants_json():
            return exc
        return jsonify(_error_body(exc.description or exc.name)), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected_exception(exc: Exception):
        current_app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        if not _wants_json():
            return exceptions.InternalServerError()
        return jsonify(_error_body(GENERIC_FAILURE_MESSAGE)), 500
