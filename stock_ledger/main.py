import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from stock_ledger.core.config import settings
from stock_ledger.core.logging_config import setup_logging
from stock_ledger.core.redis import redis_client
from stock_ledger.db.init_db import create_tables
from stock_ledger.middleware.logging import LoggingMiddleware
from stock_ledger.services.notification.stock_broadcaster import stock_broadcaster
from stock_ledger.api.v1.api import api_router
from stock_ledger.utils.clock import utcnow

logger = logging.getLogger(__name__)


async def stop_relay(relay_task: asyncio.Task):
    """Cancel the Redis relay; a crash it already had is logged, not re-raised"""
    relay_task.cancel()
    try:
        await relay_task
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.exception("Stock update relay had stopped with an error")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"🚀 Starting Stock Ledger API ({settings.ENVIRONMENT})")

    if settings.AUTO_CREATE_TABLES:
        await create_tables()

    relay_task = None
    if redis_client.enabled:
        await redis_client.connect()
        relay_task = asyncio.create_task(stock_broadcaster.relay_from_redis())
    else:
        logger.info("REDIS_URL not set, stock updates reach this worker's sockets only")

    yield

    if relay_task is not None:
        await stop_relay(relay_task)
    await redis_client.disconnect()
    logger.info("Stock Ledger API stopped")


app_config = {
    "title": "Stock Ledger API",
    "description": "Append-only stock movement ledger with materialized stock levels",
    "version": "1.0.0",
    "lifespan": lifespan,
}

app = FastAPI(**app_config)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS
)
app.add_middleware(LoggingMiddleware)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Database error"})


# Include routers
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": utcnow().isoformat(),
        "components": {
            "redis": "enabled" if redis_client.enabled else "disabled",
            "stock_update_connections": stock_broadcaster.connection_count,
        }
    }
