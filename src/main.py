"""Entry point for the Asterisk AMI call monitor service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.dependencies import get_monitor
from api.routes import router as api_router
from config.settings import get_settings

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    monitor = get_monitor() if settings.ami_autostart else None
    if monitor is not None:
        # Connect and login failures abort startup.
        monitor.start()
    try:
        yield
    finally:
        if monitor is not None:
            monitor.stop()


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Asterisk Call Monitor",
    description="Bridge-aware view and control of active Asterisk calls over AMI.",
    lifespan=lifespan,
)
app.include_router(api_router, prefix="/api")
