from apscheduler.schedulers.asyncio import AsyncIOScheduler
import logging

from nebula.config import get_settings
from nebula.database import SessionLocal
from nebula.services.auth import AuthService

settings = get_settings()
logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()

TOKEN_SWEEP_JOB_ID = "purge_expired_refresh_tokens"


def purge_expired_refresh_tokens():
    """Delete refresh tokens past their expiry."""
    db = SessionLocal()
    try:
        removed = AuthService.purge_expired_refresh_tokens(db)
        if removed:
            logger.info(f"Purged {removed} expired refresh tokens")
    except Exception as e:
        logger.error(f"Error purging expired refresh tokens: {e}")
    finally:
        db.close()


def init_scheduler():
    """Start the scheduler with the refresh-token sweep."""
    scheduler.add_job(
        purge_expired_refresh_tokens,
        'interval',
        minutes=settings.token_sweep_interval_minutes,
        id=TOKEN_SWEEP_JOB_ID,
        replace_existing=True
    )
    scheduler.start()
    logger.info(f"Scheduler started, token sweep every {settings.token_sweep_interval_minutes} minutes")


def shutdown_scheduler():
    """Shutdown the scheduler."""
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler shutdown")
