"""
Temple Donations — FastAPI Application Entry Point

Aggregates all routers, configures middleware, wires the payment services
and initializes the database on startup.
"""
import logging
import time
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from temple_donations.config import get_settings, validate_payment_config
from temple_donations.database import SessionLocal, init_db
from temple_donations.logging_config import configure_logging
from temple_donations.routes import payment_router, receipts_router, donations_router, admin_router
from temple_donations.services import build_services

settings = get_settings()
logger = logging.getLogger(__name__)

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Donation payment API: gateway checkout, signed callback reconciliation, "
        "UPI verification, PDF receipts and donor notifications."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)
app.state.services = build_services(settings)

# ─── Startup ─────────────────────────────────────────────────────────
BOOT_TIME = time.time()


@app.on_event("startup")
def on_startup():
    """Initialize logging and database tables, report disabled features."""
    configure_logging(settings)
    init_db()

    services = app.state.services
    services.file_store.purge_expired()

    logger.info(
        "\n%s\n  %s v%s\n  TIME: %s\n  PAYMENTS: %s\n  EMAIL: %s\n  WHATSAPP: %s\n  DATABASE: %s\n%s",
        "=" * 60,
        settings.APP_NAME,
        settings.APP_VERSION,
        datetime.now().isoformat(),
        "[OK] Live" if settings.payments_enabled else "[!] Disabled",
        "[OK] Enabled" if settings.email_enabled else "[!] Disabled",
        "[OK] Enabled" if settings.whatsapp_enabled else "[!] Disabled",
        settings.DATABASE_URL,
        "=" * 60,
    )
    for problem in validate_payment_config(settings):
        logger.warning(f"Configuration: {problem}")


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith("/api"):
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({duration}ms)")

    return response


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(payment_router)
app.include_router(receipts_router)
app.include_router(donations_router)
app.include_router(admin_router)


@app.get("/health", tags=["Health"])
def deep_health():
    """Detailed health check including dependency statuses."""
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception as e:
        logger.error(f"Health check database error: {e}")
    finally:
        db.close()

    return {
        "status": "healthy" if db_ok else "degraded",
        "database": "connected" if db_ok else "disconnected",
        "payments": "available" if settings.payments_enabled else "unavailable",
        "email_receipts": "available" if settings.email_enabled else "unavailable",
        "whatsapp_receipts": "available" if settings.whatsapp_enabled else "unavailable",
        "uptime_seconds": round(time.time() - BOOT_TIME, 1),
        "version": settings.APP_VERSION,
    }
