"""HTTP error type rendered as a flat ``{"message": ...}`` JSON body."""

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    """Error raised by route handlers and rendered by ``api_error_handler``.

    Extra keyword arguments are merged into the response body next to
    ``message``, e.g. the per-item ``errors`` list of a rejected batch.
    """

    def __init__(self, status_code: int, message: str, **extra: Any):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, **self.extra}


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
