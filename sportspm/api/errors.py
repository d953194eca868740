import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from sportspm.core.errors import DomainError

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainError)
    async def _domain_error_handler(request: Request, exc: DomainError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled request error. path=%s method=%s",
            request.url.path,
            request.method,
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
