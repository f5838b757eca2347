"""FastAPI application factory. Collaborators are built once per process in the lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from app.adapters.base import BasePlatformAdapter
from app.adapters.telegram import TelegramAdapter
from app.adapters.whatsapp import WhatsAppAdapter
from app.config import Settings, get_settings
from app.constants.domain import DEFAULT_DOMAIN, load_domain_config
from app.core.dispatch import DispatchPolicy
from app.core.orchestrator import Orchestrator
from app.core.state_machine import SessionStateMachine
from app.db import db_session
from app.infra.logging_config import LoggingConfig, get_logger
from app.routers import chat, sessions_router, webhooks
from app.schemas.events import Channel
from app.workers.llm import (
    build_embedder_from_env,
    build_llm_runner_from_env,
    build_transcriber_from_env,
)

logger = get_logger()


def _adapter_registry(settings: Settings) -> dict[Channel, BasePlatformAdapter]:
    """Build adapter registry from config. Only enabled adapters are included."""
    registry: dict[Channel, BasePlatformAdapter] = {}
    if settings.whatsapp_enabled:
        registry[Channel.WHATSAPP] = WhatsAppAdapter(
            api_url=settings.whatsapp_api_url,
            timeout=settings.delivery_timeout_seconds,
        )
    if settings.telegram_enabled and settings.telegram_bot_token:
        registry[Channel.TELEGRAM] = TelegramAdapter(
            bot_token=settings.telegram_bot_token,
            webhook_secret=settings.telegram_webhook_secret,
            account_id=settings.telegram_account_id,
        )
    return registry


def build_orchestrator(settings: Optional[Settings] = None) -> Orchestrator:
    settings = settings or get_settings()
    domain = (
        load_domain_config(settings.domain_config_path)
        if settings.domain_config_path
        else DEFAULT_DOMAIN
    )
    return Orchestrator(
        session_factory=db_session,
        state_machine=SessionStateMachine(domain),
        policy=DispatchPolicy(build_llm_runner_from_env(), domain, settings),
        embedder=build_embedder_from_env(),
        transcriber=build_transcriber_from_env(),
        adapters=_adapter_registry(settings),
        settings=settings,
    )


def create_app(testing: bool = False, orchestrator: Optional[Orchestrator] = None) -> FastAPI:
    """
    Build the application. Tests pass a prepared orchestrator; otherwise one is
    built from settings at startup.
    """
    settings = get_settings()
    LoggingConfig()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if getattr(app.state, "orchestrator", None) is None:
            app.state.orchestrator = build_orchestrator(settings)
        logger.info(
            "%s started (env=%s, channels=%s)",
            settings.app_name,
            settings.environment,
            ",".join(c.value for c in app.state.orchestrator.adapters) or "none",
        )
        yield

    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.state.testing = testing
    app.state.orchestrator = orchestrator

    app.include_router(webhooks.router)
    app.include_router(sessions_router.sessions_router)
    app.include_router(chat.router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


app = create_app()
