from __future__ import annotations

from datetime import timedelta

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.db import SessionLocal
from app.errors import install_error_handlers
from app.logging_utils import configure_root_logger
from app.routers import auth, dashboard, download, reports
from app.security.headers import install_security_headers
from app.security.sessions import install_auth_session_middleware
from app.services.download_token_service import DownloadTokenBroker


def create_app(
    *,
    session_factory: sessionmaker | None = None,
    token_broker: DownloadTokenBroker | None = None,
) -> FastAPI:
    configure_root_logger(settings.log_level.upper())

    app = FastAPI(title='Crusher Ledger')
    app.state.session_factory = session_factory or SessionLocal
    app.state.download_tokens = token_broker or DownloadTokenBroker(
        ttl=timedelta(seconds=settings.download_token_ttl_seconds)
    )

    install_security_headers(app)
    install_auth_session_middleware(app)
    install_error_handlers(app)

    app.include_router(auth.router)
    app.include_router(reports.router)
    app.include_router(dashboard.router)
    app.include_router(download.router)

    @app.get('/health')
    def health() -> dict:
        return {'status': 'ok'}

    @app.get('/robots.txt', response_class=PlainTextResponse)
    def robots_txt() -> str:
        return 'User-agent: *\nDisallow: /\n'

    return app


app = create_app()
