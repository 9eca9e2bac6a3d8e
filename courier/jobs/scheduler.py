"""
Background jobs.

The only periodic job is the overdue sweep: invoice payment status is
otherwise recomputed when an invoice is saved, so an untouched unpaid
invoice would never become Overdue on its own.
"""

import logging
import time

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.executors.asyncio import AsyncIOExecutor

from courier.config import settings

logger = logging.getLogger(__name__)

OVERDUE_SWEEP_JOB_ID = "invoice_overdue_sweep"

scheduler = AsyncIOScheduler(
    jobstores={"default": MemoryJobStore()},
    executors={"default": AsyncIOExecutor()},
    job_defaults={
        "coalesce": True,
        "max_instances": 1,
        "misfire_grace_time": 60,
    },
    timezone="UTC",
)


async def sweep_overdue_invoices() -> int:
    """Move every unpaid invoice past its due date to Overdue; returns how many moved."""
    from courier.database import get_db_session
    from courier.services.invoice_service import InvoiceService

    started = time.monotonic()
    try:
        async with get_db_session() as db:
            marked = await InvoiceService(db).sweep_overdue()
    except Exception:
        logger.exception("Overdue sweep failed")
        return 0

    logger.info(f"Overdue sweep marked {marked} invoice(s) in {time.monotonic() - started:.2f}s")
    return marked


def start_scheduler():
    if scheduler.running:
        return

    scheduler.add_job(
        sweep_overdue_invoices,
        "interval",
        minutes=settings.OVERDUE_SWEEP_INTERVAL_MINUTES,
        id=OVERDUE_SWEEP_JOB_ID,
        name="Invoice overdue sweep",
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started; overdue sweep every {settings.OVERDUE_SWEEP_INTERVAL_MINUTES} min"
    )


def shutdown_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=True)
        logger.info("Scheduler stopped")


def get_job_status() -> list[dict]:
    """Scheduled jobs for the health endpoint; empty when the scheduler is disabled."""
    return [
        {
            "id": job.id,
            "name": job.name,
            "next_run_time": job.next_run_time.isoformat() if job.next_run_time else None,
        }
        for job in scheduler.get_jobs()
    ]
