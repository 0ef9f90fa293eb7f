from typing import Any

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class ServiceError(Exception):
    """Error surfaced to HTTP callers as ``{"error": ..., "details": ...}``."""

    def __init__(
        self,
        status_code: int,
        error: str,
        details: Any = None,
        **extra: Any,
    ) -> None:
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.details = details
        self.extra = extra

    def to_content(self) -> dict[str, Any]:
        content: dict[str, Any] = {"error": self.error}
        if self.details is not None:
            content["details"] = self.details
        content.update(self.extra)
        return content


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_content())


async def request_validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    error = ServiceError(
        status.HTTP_400_BAD_REQUEST,
        "Invalid request body.",
        details=jsonable_encoder(exc.errors()),
    )
    return JSONResponse(status_code=error.status_code, content=error.to_content())
