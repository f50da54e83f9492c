"""API error taxonomy and the handlers that render it as JSON.

Every error body has the shape ``{"message": str, "errors"?: list, "error"?: Any}``.
``errors`` carries field-level validation detail; ``error`` carries upstream
diagnostics (e.g. the identity provider's reply) and is never user-facing text.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    status_code: int = 500
    message: str = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        errors: list[dict[str, Any]] | None = None,
        diagnostic: Any = None,
    ) -> None:
        self.message = message or self.message
        self.errors = errors
        self.diagnostic = diagnostic
        super().__init__(self.message)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message}
        if self.errors is not None:
            body["errors"] = self.errors
        if self.diagnostic is not None:
            body["error"] = self.diagnostic
        return body


class Unauthenticated(APIError):
    status_code = 401
    message = "Unauthorized"


class InvalidCredentials(APIError):
    status_code = 401
    message = "Invalid username or password"


class ValidationFailed(APIError):
    status_code = 400
    message = "Validation error"


class NotFound(APIError):
    status_code = 404
    message = "Not found"


class Forbidden(APIError):
    status_code = 403
    message = "You don't have access to this resource"


class DuplicateUsername(APIError):
    status_code = 400
    message = "Username already exists"


class DuplicateChannel(APIError):
    status_code = 400
    message = "Channel already exists for this user"


class InvalidOAuthState(APIError):
    status_code = 400
    message = "Invalid state parameter"


class MissingProviderConfig(APIError):
    status_code = 500
    message = "Missing Twitch client ID configuration"


class OAuthTokenExchangeFailed(APIError):
    status_code = 400
    message = "Failed to get access token"


class ProviderUnavailable(OAuthTokenExchangeFailed):
    status_code = 502
    message = "Twitch is unreachable, please try again"


class TwitchAccountAlreadyLinked(APIError):
    status_code = 400
    message = "This Twitch account is already linked to another user"


class PredictionAlreadySettled(APIError):
    status_code = 400
    message = "Prediction has already been settled"


class StorageUnavailable(APIError):
    status_code = 503
    message = "Database not ready"


class InternalError(APIError):
    status_code = 500
    message = "Internal server error"


def _field_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    errors = []
    for err in exc.errors():
        # loc is ("body" | "query" | "path", field, ...)
        loc = [str(part) for part in err.get("loc", ())]
        errors.append(
            {
                "field": ".".join(loc[1:]) or ".".join(loc),
                "message": err.get("msg", "Invalid value"),
                "type": err.get("type", "value_error"),
            }
        )
    return errors


async def _api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Routing errors (unknown path, wrong method) in the same body shape
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ValidationFailed(errors=_field_errors(exc))
    logger.debug(f"Validation failed on {request.method} {request.url.path}: {error.errors}")
    return JSONResponse(status_code=error.status_code, content=error.to_body())


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    error = InternalError()
    return JSONResponse(status_code=error.status_code, content=error.to_body())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, _api_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)
