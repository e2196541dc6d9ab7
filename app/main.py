"""
FastAPI Application Entry Point

Restaurant POS backend
Supports both Mock services (development) and Real APIs (staging/production).

Endpoints:
    - /api/auth: accounts, login, password reset
    - /api/menu: categories and menu items
    - /api/orders: staff and guest QR orders
    - /api/payments: cash, manual and Midtrans payments, webhook
    - /api/staff: staff console and staff management
    - /api/owner: sales reports
    - GET /health: System health check
"""

import asyncio
import logging
import sys
import time
from datetime import datetime
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import redis

# Windows-specific event loop policy
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Internal imports
from app.core.config import get_settings, setup_logging
from app.core.errors import register_exception_handlers
from app.core.middleware import (
    BodySizeLimitMiddleware,
    RateLimitMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
)
from app.database import async_session_maker, engine, get_db, init_db
from app.routers import auth, menu, orders, owner, payments, staff
from app.schemas import HealthResponse
from app.services.catalog import seed_default_categories
from app.services.notifications import get_notification_service
from app.services.payment import get_payment_gateway

# Initialize configuration and logging
settings = get_settings()
setup_logging()
logger = logging.getLogger(__name__)

START_TIME = time.time()


# =============================================================================
# APPLICATION LIFECYCLE
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application startup and shutdown events.
    """
    # Startup
    logger.info("=" * 60)
    logger.info(f"🚀 Starting {settings.app_name}")
    logger.info(f"   Version: {settings.app_version}")
    logger.info(f"   Environment: {settings.env_mode.value}")
    logger.info(f"   Debug: {settings.debug}")
    logger.info("=" * 60)

    # Initialize database
    await init_db()
    async with async_session_maker() as session:
        await seed_default_categories(session)
    logger.info("✅ Database initialized")

    # Log service configuration
    gateway = get_payment_gateway()
    notifications = get_notification_service()
    logger.info(f"✅ Payment Gateway: {gateway.provider_name}")
    logger.info(f"✅ Notification Service: {notifications.provider_name}")

    # Validate production config
    if settings.use_real_services:
        missing = settings.validate_production_config()
        if missing:
            logger.warning(f"⚠️ Missing production config: {missing}")

    logger.info("=" * 60)
    logger.info("✅ Application ready!")
    logger.info("=" * 60)

    yield  # Application runs

    # Shutdown
    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("✅ Cleanup complete")


# =============================================================================
# APPLICATION INSTANCE
# =============================================================================

app = FastAPI(
    title=settings.app_name,
    description=(
        "Restaurant point-of-sale backend: menu, dine-in and QR guest orders, "
        "cash and Midtrans payments, staff accounts and sales reports."
    ),
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware (the last one added runs first)
app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url] if settings.frontend_url else [],
    allow_origin_regex=r"^https?://localhost(:\d+)?$" if settings.is_development else None,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Idempotency-Key", "X-Nonce", "X-Timestamp"],
)

register_exception_handlers(app)

app.include_router(auth.router)
app.include_router(menu.router)
app.include_router(orders.router)
app.include_router(payments.router)
app.include_router(staff.router)
app.include_router(owner.router)


# =============================================================================
# ROOT & HEALTH ENDPOINTS
# =============================================================================

@app.get("/", tags=["Root"])
async def root() -> dict[str, str]:
    """API root with navigation links."""
    return {
        "message": f"🍽️ Welcome to {settings.app_name}",
        "version": settings.app_version,
        "environment": settings.env_mode.value,
        "documentation": "/docs",
        "health": "/health",
    }


def _ping_redis() -> None:
    client = redis.Redis.from_url(settings.redis_url, socket_timeout=2)
    try:
        client.ping()
    finally:
        client.close()


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="System Health Check",
)
async def health_check(
    db: AsyncSession = Depends(get_db)
) -> HealthResponse:
    """Verify all system components are operational."""

    # Check database
    db_status = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        db_status = f"unhealthy: {str(e)}"
        logger.error(f"Database health check failed: {e}")

    # Check Redis
    redis_status = "healthy"
    if settings.celery_task_always_eager:
        redis_status = "skipped (eager tasks)"
    else:
        try:
            await asyncio.to_thread(_ping_redis)
        except redis.RedisError as e:
            redis_status = f"unhealthy: {str(e)}"
            logger.error(f"Redis health check failed: {e}")

    # Check payment gateway
    gateway = get_payment_gateway()
    payment_status = "healthy" if await gateway.health_check() else "unhealthy"

    # Check notification service
    notifications = get_notification_service()
    notification_status = "healthy" if await notifications.health_check() else "unhealthy"

    degraded = [
        s for s in [db_status, redis_status, payment_status, notification_status]
        if s.startswith("unhealthy")
    ]
    overall = "degraded" if degraded else "operational"

    return HealthResponse(
        status=overall,
        database=db_status,
        redis=redis_status,
        payment_gateway=payment_status,
        notification_service=notification_status,
        uptime_seconds=round(time.time() - START_TIME, 1),
        timestamp=datetime.now(),
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host=settings.api_host, port=settings.api_port, reload=settings.debug)
