from __future__ import annotations

import logging
from datetime import datetime, timezone
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from errors import PartialMatchError, ValidationError, ZoningAppError

logger = logging.getLogger(__name__)

_GENERIC_MESSAGES = {
    403: "The operation is not permitted on the parcel store",
    503: "The parcel store is temporarily unavailable; please retry",
}


def error_body(status: int, code: str, message: str, path: str) -> dict:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status,
        "error": HTTPStatus(status).phrase,
        "code": code,
        "message": message,
        "path": path,
    }


async def handle_app_error(request: Request, exc: ZoningAppError) -> JSONResponse:
    path = request.url.path
    if exc.expose_message:
        message = exc.message
        logger.info("%s %s -> %d %s: %s", request.method, path, exc.status, exc.code, exc.message)
    else:
        message = _GENERIC_MESSAGES.get(exc.status, "Internal error")
        logger.error("%s %s -> %d %s: %s", request.method, path, exc.status, exc.code, exc.message)
    body = error_body(exc.status, exc.code, message, path)
    if isinstance(exc, PartialMatchError):
        body["requestedCount"] = exc.requested_count
        body["updatedCount"] = exc.updated_count
    return JSONResponse(status_code=exc.status, content=body)


async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err.get("loc", ()) if x not in {"body", "query"})
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    message = "; ".join(parts) or "Invalid request"
    body = error_body(ValidationError.status, ValidationError.code, message, request.url.path)
    return JSONResponse(status_code=ValidationError.status, content=body)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ZoningAppError, handle_app_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation)
