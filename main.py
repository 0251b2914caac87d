"""
Storefront auth service: application entry point.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import register_exception_handlers, register_middleware
from auth.email import EmailSender, build_email_sender
from auth.jwt import TokenCodec
from auth.password import PasswordHasher
from auth.routes import router as users_router
from auth.store import SqlRefreshTokenStore
from config.settings import Settings, config
from database.models import Base
from database.session import async_session_factory, engine

logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
    stream=sys.stdout,
)
for _noisy in ("httpcore", "httpx", "sqlalchemy.engine", "urllib3"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


async def purge_expired_refresh_tokens() -> int:
    async with async_session_factory() as session:
        count = await SqlRefreshTokenStore(session).purge_expired()
        await session.commit()
    return count


def create_app(
    settings: Settings = config,
    email_sender: Optional[EmailSender] = None,
) -> FastAPI:
    app = FastAPI(
        title="Storefront Auth",
        version="1.0.0",
        description="User registration, login and session tokens.",
    )

    # Long-lived collaborators, shared by every request
    app.state.token_codec = TokenCodec.from_settings(settings)
    app.state.password_hasher = PasswordHasher.from_settings(settings)
    app.state.email_sender = email_sender or build_email_sender(settings)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_middleware(app)
    register_exception_handlers(app)

    # Routes
    app.include_router(users_router, prefix="/api/v1/users")

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    @app.on_event("startup")
    async def on_startup():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        purged = await purge_expired_refresh_tokens()
        if purged:
            logger.info("Removed %d expired refresh tokens from previous runs", purged)

        logger.info("Application ready to accept requests.")

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level="debug" if config.debug else "info",
    )
