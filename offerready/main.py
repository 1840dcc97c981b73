"""
OfferReady API application: routers, middleware and resource lifecycle.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from offerready.config import settings
from offerready.db.pool import db_pool
from offerready.errors import register_error_handlers
from offerready.infrastructure.events import mutation_notifier
from offerready.infrastructure.observability.logging import get_logger, setup_logging
from offerready.middleware import CORSMiddleware, RequestContextMiddleware, RequestLoggingMiddleware
from offerready.routes import billing, call_events, contacts, health, inbound_emails, pipeline
from offerready.services.billing.stripe_client import stripe_client
from offerready.services.query_cache import invalidate_for_mutation
from offerready.services.redis_client import fast_redis

# Setup logging before creating the app
setup_logging(log_level=settings.log_level)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    startup_tasks = []

    try:
        logger.info("Initializing database pool")
        await db_pool.initialize()
        startup_tasks.append("database_pool")

        logger.info("Initializing Redis connection")
        await fast_redis.initialize()
        startup_tasks.append("redis")

        mutation_notifier.subscribe(invalidate_for_mutation)

        logger.info("All services initialized successfully", services=startup_tasks)

    except Exception as e:
        logger.error("Failed to initialize services", error=str(e), completed_tasks=startup_tasks)

        # Clean up any successfully initialized services in reverse order
        if "redis" in startup_tasks:
            await fast_redis.close()
        if "database_pool" in startup_tasks:
            await db_pool.close()
        raise

    yield

    # Shutdown sequence (reverse order)
    logger.info("Application shutting down")
    mutation_notifier.unsubscribe(invalidate_for_mutation)

    shutdown_errors = []

    try:
        await stripe_client.close()
    except Exception as e:
        logger.error("Error closing Stripe client", error=str(e))
        shutdown_errors.append(f"Stripe: {e}")

    # fast_redis.close() logs its own failures
    await fast_redis.close()

    try:
        logger.info("Closing database pool")
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
        shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="OfferReady API",
    description="Recruiting pipeline, scheduled calls and subscriptions",
    version="0.1.0",
    lifespan=lifespan,
)

register_error_handlers(app)

# Last added runs first: CORS answers preflights before anything else
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(RequestContextMiddleware)
app.add_middleware(
    CORSMiddleware,
    allowed_origins=settings.CORS_ALLOWED_ORIGINS,
    path_methods={
        "/billing/subscription": ["GET", "OPTIONS"],
        "/billing": ["POST", "OPTIONS"],
    },
)

# Include routers
app.include_router(health.router)
app.include_router(contacts.router)
app.include_router(pipeline.router)
app.include_router(call_events.router)
app.include_router(inbound_emails.router)
app.include_router(billing.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
