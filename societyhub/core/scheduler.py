"""
APScheduler setup for recurring maintenance-bill generation.

Jobs run on the application's event loop (AsyncIOScheduler), the same loop
the store listeners and binders live on.
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from datetime import datetime

from .config import settings

logger = logging.getLogger(__name__)

scheduler = AsyncIOScheduler()


async def bill_autogen_job():
    """Create next month's bill for every resident whose bills are all paid"""
    try:
        from ..services.maintenance_billing_service import maintenance_billing_service

        logger.info(f"[{datetime.now()}] 🔄 Running maintenance bill auto-generation...")
        result = await maintenance_billing_service.auto_generate_for_all_residents()

        if result.get('generated'):
            logger.info(f"✅ Bills generated: {len(result['generated'])} of {result['checked']} residents")
            for bill_id in result['generated']:
                logger.info(f"   - {bill_id}")
        else:
            logger.info(f"ℹ️  No bills needed ({result.get('checked', 0)} residents checked)")

    except Exception as e:
        logger.error(f"❌ Bill auto-generation job failed: {str(e)}", exc_info=True)


def start_scheduler():
    """Start the scheduler; must be called from within the running event loop"""
    if scheduler.running:
        logger.warning("Scheduler already running")
        return

    if not settings.ENABLE_BILL_AUTOGEN:
        logger.info("Bill auto-generation disabled - scheduler not started")
        return

    try:
        interval_minutes = settings.BILL_AUTOGEN_INTERVAL_MINUTES
        logger.info(f"Starting scheduler: bill auto-generation every {interval_minutes} minute(s)")

        scheduler.add_job(
            bill_autogen_job,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id='bill_autogen',
            name='Maintenance Bill Auto-generation',
            replace_existing=True,
            misfire_grace_time=60
        )

        scheduler.start()
        logger.info("✅ Scheduler started successfully")

    except Exception as e:
        logger.error(f"❌ Failed to start scheduler: {str(e)}", exc_info=True)


def stop_scheduler():
    """Stop the scheduler"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("✅ Scheduler stopped")
