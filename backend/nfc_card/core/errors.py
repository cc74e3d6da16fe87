from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


logger = logging.getLogger(__name__)


class CardError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(CardError):
    status_code = 404


class ValidationError(CardError):
    status_code = 422


class Conflict(ValidationError):
    status_code = 409


class BackendUnavailable(CardError):
    status_code = 503


class PartialFailure(CardError):
    """A multi-step operation stopped after an earlier step failed.

    Raised only after the session was rolled back, so none of the steps
    are visible to other readers.
    """

    status_code = 500

    def __init__(self, message: str, step: str) -> None:
        super().__init__(message)
        self.step = step


async def _card_error_handler(request: Request, exc: CardError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# 注册统一异常处理：领域异常 -> {"detail": message}
def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CardError, _card_error_handler)
