from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.logger import logger
from app.db.session import async_session
from app.services.appointment_service import AppointmentService

scheduler = AsyncIOScheduler()

async def run_auto_cancel() -> int:
    async with async_session() as session:
        try:
            return await AppointmentService(session).auto_cancel_expired()
        except SQLAlchemyError as e:
            logger.error(f"Auto-cancel sweep failed: {e}")
            return 0

def start_scheduler() -> None:
    if not settings.AUTO_CANCEL_ENABLED:
        logger.info("Auto-cancel job disabled")
        return

    scheduler.add_job(
        run_auto_cancel,
        IntervalTrigger(minutes=settings.AUTO_CANCEL_INTERVAL_MINUTES),
        id="auto_cancel_expired",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(f"Auto-cancel job scheduled every {settings.AUTO_CANCEL_INTERVAL_MINUTES} minutes")

def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
