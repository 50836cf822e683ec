from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from pydantic import ValidationError as PydanticValidationError

from nebula import __version__
from nebula.config import get_settings
from nebula.database import SessionLocal, close_db, init_db, utcnow
from nebula.errors import register_exception_handlers
from nebula.middleware.security import setup_security_middleware
from nebula.routers import admin_router, auth_router, qr_router, tickets_router
from nebula.schemas.common import success_response
from nebula.services.auth import AuthService
from nebula.services.scheduler import init_scheduler, shutdown_scheduler

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def bootstrap_admin():
    db = SessionLocal()
    try:
        AuthService.ensure_initial_admin(
            db, settings.admin_email, settings.admin_password, settings.admin_name
        )
    except PydanticValidationError as e:
        logger.error(f"Initial admin not created, ADMIN_* settings are invalid: {e}")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    bootstrap_admin()
    if settings.scheduler_enabled:
        init_scheduler()
    logger.info("Nebula Tickets API started")
    yield
    shutdown_scheduler()
    close_db()
    logger.info("Nebula Tickets API stopped")


app = FastAPI(
    title="Nebula Tickets",
    description="Ticket sales, QR issuance and door validation",
    version=__version__,
    lifespan=lifespan
)

register_exception_handlers(app)

# Security headers, CORS, trusted hosts and the rate limiter
setup_security_middleware(
    app,
    allowed_hosts=settings.allowed_hosts,
    cors_origins=settings.cors_origins
)

app.include_router(auth_router, prefix="/api")
app.include_router(tickets_router, prefix="/api")
app.include_router(qr_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/api/health")
async def health():
    return success_response(
        data={"status": "ok", "version": __version__, "timestamp": utcnow().isoformat() + "Z"},
        message="Nebula Tickets API is running"
    )


@app.get("/api")
async def index():
    return success_response(
        data={
            "name": "Nebula Tickets API",
            "version": __version__,
            "endpoints": {
                "auth": "/api/auth",
                "tickets": "/api/tickets",
                "qr": "/api/qr",
                "admin": "/api/admin",
                "health": "/api/health"
            }
        }
    )
