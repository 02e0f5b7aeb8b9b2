"""
devio.api.main — FastAPI application entry point
=================================================

Run with::

    uvicorn devio.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from devio.api.deps import get_config, get_engine  # noqa: E402
from devio.api.errors import register_exception_handlers  # noqa: E402
from devio.api.routes.achievements import router as achievements_router  # noqa: E402
from devio.api.routes.aura import router as aura_router  # noqa: E402
from devio.api.routes.cipher import router as cipher_router  # noqa: E402
from devio.api.routes.notifications import router as notifications_router  # noqa: E402
from devio.api.routes.questions import router as questions_router  # noqa: E402
from devio.api.routes.votes import router as votes_router  # noqa: E402
from devio.database.engine import init_db  # noqa: E402
from devio.services.dispatch import configure_dispatcher, shutdown_dispatcher  # noqa: E402

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle: schema, seed data, side-effect pool."""
    cfg = get_config()
    configure_dispatcher(cfg.side_effect_workers)

    engine = get_engine()
    init_db(engine)
    logger.info("%s economy API started, engine ready (%s)", cfg.platform_name, engine.url.database)
    yield
    shutdown_dispatcher()
    logger.info("%s economy API shutting down", cfg.platform_name)


app = FastAPI(
    title="Devio Economy API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Mount routers
app.include_router(aura_router, prefix="/api")
app.include_router(cipher_router, prefix="/api")
app.include_router(votes_router, prefix="/api")
app.include_router(questions_router, prefix="/api")
app.include_router(achievements_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
