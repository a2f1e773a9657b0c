"""
Background task scheduler for housekeeping jobs.
Uses APScheduler to manage scheduled jobs.
"""

import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
import os

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = None


def setup_scheduler(app):
    """
    Initialize and start the background scheduler.
    Jobs only run when ENABLE_BACKGROUND_JOBS=true.

    Returns True when the scheduler was started.
    """
    global scheduler

    if os.environ.get("ENABLE_BACKGROUND_JOBS") != "true":
        logger.info("Background jobs disabled (set ENABLE_BACKGROUND_JOBS=true to enable)")
        return False

    scheduler = BackgroundScheduler(daemon=True)
    logger.info("Setting up background scheduled jobs...")

    # Token cleanup - runs daily at 2:30 AM
    scheduler.add_job(
        func=_run_token_cleanup,
        args=[app],
        trigger=CronTrigger(hour=2, minute=30),
        id='purge_auth_tokens',
        name='Purge expired auth tokens',
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=3600
    )
    logger.info("Token cleanup scheduled: Daily at 2:30 AM")

    # Price expiry - runs daily just after midnight
    scheduler.add_job(
        func=_run_price_expiry,
        args=[app],
        trigger=CronTrigger(hour=0, minute=10),
        id='expire_prices',
        name='Deactivate expired price entries',
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=3600
    )
    logger.info("Price expiry scheduled: Daily at 12:10 AM")

    scheduler.start()
    logger.info("Background scheduler started successfully")
    return True


def stop_scheduler():
    """Stop the background scheduler gracefully."""
    global scheduler
    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler shut down successfully")


def purge_auth_tokens(session):
    """Delete tokens that are expired or revoked. Returns the number removed."""
    from models import AuthToken
    from timezone_utils import get_utc_now

    removed = session.query(AuthToken).filter(or_(
        AuthToken.expires_at <= get_utc_now(),
        AuthToken.revoked_at.isnot(None),
    )).delete(synchronize_session=False)
    session.commit()
    return removed


def expire_prices(session, today=None):
    """Deactivate active price entries whose effective_to is before today. Returns the count."""
    from models import ProductPrice
    from timezone_utils import get_local_today

    today = today or get_local_today()
    entries = session.query(ProductPrice).filter(
        ProductPrice.is_active.is_(True),
        ProductPrice.effective_to.isnot(None),
        ProductPrice.effective_to < today,
    ).all()
    for entry in entries:
        entry.disable("Expired")
    session.commit()
    return len(entries)


def _run_token_cleanup(app):
    """Wrapper to run token cleanup with proper app context."""
    from app import db

    with app.app_context():
        try:
            removed = purge_auth_tokens(db.session)
            logger.info(f"Scheduled token cleanup removed {removed} tokens")
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error in scheduled token cleanup: {str(e)}", exc_info=True)


def _run_price_expiry(app):
    """Wrapper to run price expiry with proper app context."""
    from app import db

    with app.app_context():
        try:
            expired = expire_prices(db.session)
            logger.info(f"Scheduled price expiry deactivated {expired} entries")
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error(f"Error in scheduled price expiry: {str(e)}", exc_info=True)
