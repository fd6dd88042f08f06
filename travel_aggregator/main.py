"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from travel_aggregator import deps
from travel_aggregator.config import get_settings
from travel_aggregator.errors import AggregatorError
from travel_aggregator.jobs.scheduler import DailyScheduler
from travel_aggregator.web.routes import aggregator_error_response, router


# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings = get_settings()

    # Initialize database
    deps.init_database(settings)
    logger.info("Database initialized")

    deps.init_orchestrator(settings)
    logger.info("Provider registry initialized")

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = DailyScheduler(deps.SessionLocal, run_hour=settings.dedup_run_hour)
        scheduler.start()

    yield

    if scheduler is not None:
        await scheduler.stop()
    await deps.shutdown_orchestrator()
    logger.info("Application shutting down")


def create_app() -> FastAPI:
    """Create FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Travel Aggregator",
        description="Multi-provider travel and ticketing search",
        version="1.0.0",
        debug=settings.debug,
        lifespan=lifespan,
    )

    @app.exception_handler(AggregatorError)
    async def handle_aggregator_error(request: Request, exc: AggregatorError):
        return aggregator_error_response(request, exc, debug=settings.debug)

    # Include routes
    app.include_router(router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "travel_aggregator.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
