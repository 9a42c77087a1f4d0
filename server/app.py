"""FastAPI application factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from config.config import Config
from server.routes import aibot, health
from utils.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup/shutdown logic."""
    config = Config()
    logger.info(
        "FastAPI server starting up",
        extra={
            "extra_fields": {
                "aibot_enabled": config.AIBOT_LOCAL_ENABLED,
                "llm": config.get_model_info(),
                "book_api": config.BOOK_API_BASE_URL,
            }
        },
    )
    config.validate()

    yield

    logger.info("FastAPI server shutting down")


def create_app() -> FastAPI:
    """Factory function to create FastAPI application."""
    app = FastAPI(
        title="BookEchoes AIBot API",
        description="Intent classification and research workflows for book discovery",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-AIBot-Mode", "X-AIBot-Books-Count"],
    )

    app.include_router(health.router)
    app.include_router(aibot.router)

    return app
