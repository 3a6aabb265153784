"""Background jobs: photo reconciliation and proactive token refresh."""
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.container import AppContainer
from app.core.errors import PhotoLibraryError

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


def reconcile_job(container: AppContainer):
    """Reconcile every connected user's Drive folder with their photo rows."""
    for user_id in container.token_cache.users_with_tokens():
        try:
            stats = container.photo_service.reconcile(user_id)
            logger.info(f"Background reconcile for user {user_id} completed: {stats}")
        except PhotoLibraryError as e:
            logger.error(f"Background reconcile for user {user_id} failed: {e}")


def token_refresh_job(container: AppContainer):
    """Refresh access tokens that are about to expire."""
    for user_id in container.token_cache.expiring_users():
        try:
            container.token_cache.get_valid(user_id)
        except PhotoLibraryError as e:
            logger.warning(f"Proactive token refresh for user {user_id} failed: {e}")


def start_scheduler(container: AppContainer):
    """Start the background scheduler. An interval of 0 disables that job."""
    settings = container.settings
    if settings.reconcile_interval_minutes > 0:
        scheduler.add_job(
            reconcile_job,
            trigger=IntervalTrigger(minutes=settings.reconcile_interval_minutes),
            args=[container],
            id="photo_reconcile",
            replace_existing=True,
        )
    if settings.token_refresh_interval_minutes > 0:
        scheduler.add_job(
            token_refresh_job,
            trigger=IntervalTrigger(minutes=settings.token_refresh_interval_minutes),
            args=[container],
            id="token_refresh",
            replace_existing=True,
        )
    scheduler.start()
    logger.info(
        f"Scheduler started, reconciling every {settings.reconcile_interval_minutes} minutes, "
        f"refreshing tokens every {settings.token_refresh_interval_minutes} minutes"
    )


def shutdown_scheduler():
    """Graceful shutdown."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
    logger.info("Scheduler shut down")
