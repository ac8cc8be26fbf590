"""FastAPI web application for moderated debate rooms."""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.settings import AppConfig, get_default_config
from debate_room.core import RoomEngine
from moderation.base import TextEvaluator
from moderation.evaluator import ModelTextEvaluator, SilentEvaluator
from web.connection_hub import ConnectionHub
from web.endpoints.rooms import router as rooms_router, ws_router as rooms_ws_router
from web.endpoints.system import router as system_router

logger: logging.Logger = logging.getLogger(__name__)

# Global connection hub and room engine
hub: ConnectionHub = ConnectionHub()
room_engine: RoomEngine | None = None


def build_evaluator(config: AppConfig) -> TextEvaluator:
    """Evaluator for the configured moderation provider."""
    if not config.moderation.enabled:
        logger.info("Moderation disabled; messages will not be evaluated")
        return SilentEvaluator()
    return ModelTextEvaluator(config.moderation, config.system)


def build_room_engine(config: AppConfig) -> RoomEngine:
    return RoomEngine(config, evaluator=build_evaluator(config), broadcaster=hub)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan - startup and shutdown."""
    global room_engine

    if room_engine is None:
        config = get_default_config()
        logging.getLogger().setLevel(config.system.log_level)
        room_engine = build_room_engine(config)
    logger.info("Room engine ready")

    yield

    # Shutdown: close every room so timers and evaluations stop
    await room_engine.shutdown()


# Local browser clients on any port when ALLOWED_ORIGINS is unset
LOCAL_ORIGIN_REGEX = r"https?://(localhost|127\.0\.0\.1)(:\d+)?"


def get_allowed_origins() -> list[str]:
    """Comma-separated ALLOWED_ORIGINS, or an empty list for local development."""
    env_origins = os.environ.get("ALLOWED_ORIGINS", "")
    return [origin.strip() for origin in env_origins.split(",") if origin.strip()]


def configure_cors(application: FastAPI) -> None:
    origins = get_allowed_origins()
    if origins:
        logger.info(f"Setting CORS allowed origins: {origins}")
        cors = {"allow_origins": origins}
    else:
        logger.info("No ALLOWED_ORIGINS set, allowing localhost clients only")
        cors = {"allow_origin_regex": LOCAL_ORIGIN_REGEX}

    application.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        **cors,
    )


app: FastAPI = FastAPI(
    title="Debate Rooms",
    description="Moderated, turn-based debate rooms over WebSocket",
    version="1.0.0",
    lifespan=lifespan,
)
configure_cors(app)

app.include_router(system_router, prefix="/v1")
app.include_router(rooms_router, prefix="/v1")
app.include_router(rooms_ws_router, prefix="/v1")
