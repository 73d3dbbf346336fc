"""Storefront service entry point."""
import logging
from contextlib import asynccontextmanager

import httpx
import redis
import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.redis import RedisInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

from config import (
    API_VERSION,
    EXCHANGE_RATE_TIMEOUT_SECONDS,
    LOG_LEVEL,
    RATE_LIMIT_PER_MINUTE_IP,
    RATE_LIMIT_PER_MINUTE_USER,
    REDIS_URL,
    SERVICE_NAME
)
from database import engine, init_db
from exceptions import StorefrontError
from logging_config import setup_logging
from monitoring import init_profiling
from redis_rate_limiter import RedisRateLimiter
from routers import admin, cart, currency, products, auth as auth_router
from services.currency_service import CurrencyService
from services.external_service import ExchangeRateClient
from services.sequencing import MutationQueue

setup_logging(LOG_LEVEL)
logger = logging.getLogger(__name__)

# Sync client: the rate limiter middleware cannot await, and the badge cache shares it
redis_client = redis.from_url(REDIS_URL, decode_responses=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Wire shared state for the lifetime of the process.

    Startup creates tables and seed data, the exchange rate client and its
    background refresh, and the per-user cart write queue. Shutdown stops the
    refresh loop before closing the clients it uses.
    """
    logger.info("Starting storefront service", extra={"version": API_VERSION})

    init_db()

    RedisInstrumentor().instrument(redis_client=redis_client)
    app.state.redis_client = redis_client

    http_client = httpx.AsyncClient(timeout=EXCHANGE_RATE_TIMEOUT_SECONDS)
    HTTPXClientInstrumentor().instrument_client(http_client)

    # Serves fallback rates until the first refresh lands
    currency_service = CurrencyService(ExchangeRateClient(http_client))
    currency_service.start()
    app.state.currency_service = currency_service

    app.state.mutation_queue = MutationQueue()

    init_profiling()
    logger.info("Storefront service ready")

    yield

    logger.info("Shutting down storefront service")
    await currency_service.stop()
    await http_client.aclose()
    redis_client.close()


app = FastAPI(
    title="Storefront Service",
    version=API_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    RedisRateLimiter,
    redis_client=redis_client,
    requests_per_minute_ip=RATE_LIMIT_PER_MINUTE_IP,
    requests_per_minute_user=RATE_LIMIT_PER_MINUTE_USER
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

FastAPIInstrumentor.instrument_app(app)
SQLAlchemyInstrumentor().instrument(engine=engine)


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    """Errors that escape a router are scoped to the request, never the process."""
    logger.warning("Request failed", extra={
        "path": request.url.path,
        "error_type": type(exc).__name__,
        "error": str(exc)
    })
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


@app.get("/health")
async def health(request: Request):
    """Liveness plus the exchange rate source currently in use."""
    currency_service = getattr(request.app.state, "currency_service", None)
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": API_VERSION,
        "exchange_rates": currency_service.rate_table.source if currency_service else None
    }


for router_module in (auth_router, products, cart, currency, admin):
    app.include_router(router_module.router)


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
