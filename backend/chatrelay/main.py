"""ChatRelay API — FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map RelayError → structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Runtime (cache, breakers, monitor, resilience) initialized on startup via
      lifespan; the cache sweeper stops on shutdown

Design Decisions:
    - Lifespan over @app.on_event: FastAPI recommended pattern, cleaner cleanup
    - Runtime reused when already initialized (tests install one with a mock
      model client before the app starts)
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatrelay.api.error_handlers import register_error_handlers
from chatrelay.api.routes import chat_stream, health, performance
from chatrelay.config import get_settings
from chatrelay.infrastructure import runtime as runtime_module
from chatrelay.infrastructure.observability import setup_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    runtime = runtime_module.runtime or runtime_module.init_runtime(settings)
    await runtime.start()
    logger.info("ChatRelay API started")
    yield
    await runtime.stop()
    logger.info("ChatRelay API shutting down")


app = FastAPI(title="ChatRelay API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(chat_stream.router)
app.include_router(performance.router)

register_error_handlers(app)
