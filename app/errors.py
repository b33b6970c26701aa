from __future__ import annotations

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from app.logging_utils import get_logger

LOGGER = get_logger(__name__)

INVALID_DOWNLOAD_LINK = 'Invalid or expired download link'


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(OperationalError)
    async def record_store_unavailable(request: Request, exc: OperationalError):
        LOGGER.error('Record store unavailable during %s %s', request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={'detail': 'Database connection error'},
        )
