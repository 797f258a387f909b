"""
SwarnaBill - Application Entry Point
======================================
FastAPI app initialization, error handling, and router registration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config import settings
from config.database import Base, engine
from common.exceptions import SwarnaBillError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("swarnabill.app")

# ==========================================
# Import ALL models so Alembic/Base can see them
# ==========================================
from modules.user.models import User  # noqa: F401, E402
from modules.rate.models import MetalRate  # noqa: F401, E402
from modules.billing.models import Bill, BillItem, BillPaymentLog  # noqa: F401, E402
from modules.exchange.models import Exchange  # noqa: F401, E402

# ==========================================
# Import routers
# ==========================================
from modules.auth.routes import router as auth_router  # noqa: E402
from modules.rate.routes import router as rate_router  # noqa: E402
from modules.billing.routes import router as bill_router  # noqa: E402
from modules.exchange.routes import router as exchange_router  # noqa: E402
from modules.report.routes import router as report_router  # noqa: E402


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.SHOP_NAME} billing API started")
    yield


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="SwarnaBill",
    description="Jewellery billing and old-gold exchange",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)


# ==========================================
# Exception handler: business errors → JSON
# ==========================================
@app.exception_handler(SwarnaBillError)
async def business_error_handler(request: Request, exc: SwarnaBillError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(
        {"success": False, "message": exc.message, "code": type(exc).__name__},
        status_code=exc.status_code,
    )


# ==========================================
# Register Routers
# ==========================================
app.include_router(auth_router)
app.include_router(rate_router)
app.include_router(bill_router)
app.include_router(exchange_router)
app.include_router(report_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
