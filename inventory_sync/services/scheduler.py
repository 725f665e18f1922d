import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from inventory_sync.config import Settings
from inventory_sync.services.square_sync_service import sync_inventory_levels

logger = logging.getLogger(__name__)


async def scheduled_level_sync(settings: Settings):
    try:
        result = await sync_inventory_levels(settings)
        logger.info(f"✔ Scheduled Square sync done → {result}")
    except Exception as e:
        logger.error(f"Scheduled Square sync failed: {e}")


def start_scheduler(settings: Settings) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        scheduled_level_sync,
        "interval",
        minutes=settings.SYNC_INTERVAL_MINUTES,
        args=[settings],
    )
    scheduler.start()
    logger.info(f"Scheduler started: Square → Shopify level sync every {settings.SYNC_INTERVAL_MINUTES} minutes")
    return scheduler
