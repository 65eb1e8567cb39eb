"""Error taxonomy shared by services and routers.

Services raise these; the handlers registered in ``openbook.main`` render
every error as ``{"ok": false, "error": message}`` with the matching status.
"""
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    default_message = "Server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(AppError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(AppError):
    status_code = 403
    default_message = "Forbidden"


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class InsufficientFunds(ValidationError):
    default_message = "Insufficient balance"

    def __init__(self, asset: Optional[str] = None, message: Optional[str] = None):
        self.asset = asset
        if message is None and asset:
            message = f"Insufficient {asset} balance"
        super().__init__(message)


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class PlanNotFound(NotFound):
    default_message = "Plan not found"


class AlreadyProcessed(AppError):
    status_code = 409
    default_message = "Request already processed"


class PriceUnavailable(AppError):
    status_code = 503
    default_message = "Price unavailable"


class UpstreamError(AppError):
    status_code = 502
    default_message = "Datastore unavailable"


def error_body(message: str) -> dict:
    return {"ok": False, "error": message}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.warning("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(error_body(exc.message), status_code=exc.status_code)

    @app.exception_handler(HTTPException)
    async def _http_error(request: Request, exc: HTTPException):
        return JSONResponse(error_body(str(exc.detail)), status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        if errors:
            first = errors[0]
            field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "body"
            message = f"Invalid {field}: {first.get('msg', 'invalid value')}"
        else:
            message = "Invalid request"
        return JSONResponse(error_body(message), status_code=400)

    @app.exception_handler(SQLAlchemyError)
    async def _datastore_error(request: Request, exc: SQLAlchemyError):
        logger.error("Datastore error on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(error_body(UpstreamError.default_message), status_code=UpstreamError.status_code)

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(error_body("Server error"), status_code=500)
