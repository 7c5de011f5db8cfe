"""
FastAPI application.

Routes are thin: they parse the provider's request, call the flow layer in
a worker thread and render the result. Doctors are seeded and the
background sweeps start with the application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from smarthealth import __version__
from smarthealth.api import health, payments, ussd, voice
from smarthealth.config import settings
from smarthealth.jobs import get_scheduler
from smarthealth.repositories import doctors

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s", settings.brand.service_name)
    doctors.seed_defaults()
    scheduler = get_scheduler()
    if settings.jobs.enabled:
        scheduler.start()
    yield
    scheduler.stop()
    logger.info("%s stopped", settings.brand.service_name)


def create_app() -> FastAPI:
    app = FastAPI(
        title=f"{settings.brand.service_name} Sessions",
        version=__version__,
        lifespan=lifespan,
    )
    app.include_router(ussd.router)
    app.include_router(voice.router)
    app.include_router(payments.router)
    app.include_router(health.router)
    return app


app = create_app()
