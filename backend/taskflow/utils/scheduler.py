"""Background scheduler for reminder firing and item checks"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from taskflow.services.notification import NotificationService
from taskflow.utils.monitoring import StructuredLogger, log_job_errors


def create_scheduler(service: NotificationService) -> AsyncIOScheduler:
    """Build a scheduler with the notification jobs registered"""
    scheduler = AsyncIOScheduler(timezone="UTC")

    # Fire due reminders every minute
    scheduler.add_job(
        log_job_errors(service.process_due_reminders),
        trigger=IntervalTrigger(minutes=1),
        id="process_due_reminders",
        name="Fire due and snoozed reminders",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    # Due-soon and overdue item checks at the top of every hour
    scheduler.add_job(
        log_job_errors(service.check_due_soon_items),
        trigger=CronTrigger(minute=0),
        id="check_due_soon_items",
        name="Notify owners of items due within 24 hours",
        replace_existing=True,
    )
    scheduler.add_job(
        log_job_errors(service.check_overdue_items),
        trigger=CronTrigger(minute=5),
        id="check_overdue_items",
        name="Notify owners of overdue items",
        replace_existing=True,
    )

    # Housekeeping at 03:00 UTC
    scheduler.add_job(
        log_job_errors(service.cleanup_old_notifications),
        trigger=CronTrigger(hour=3, minute=0),
        id="cleanup_old_notifications",
        name="Delete old read notifications",
        replace_existing=True,
    )
    return scheduler


def start_scheduler(scheduler: AsyncIOScheduler):
    """Start the background scheduler"""
    if scheduler.running:
        return

    scheduler.start()

    reminder_job = scheduler.get_job("process_due_reminders")
    StructuredLogger.log_event(
        "scheduler_initialized",
        "Notification scheduler started",
        metadata={
            "jobs": [job.id for job in scheduler.get_jobs()],
            "next_reminder_check": str(reminder_job.next_run_time) if reminder_job else None,
        },
    )


def shutdown_scheduler(scheduler: AsyncIOScheduler):
    """Shutdown the background scheduler"""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        StructuredLogger.log_event(
            "scheduler_shutdown",
            "Notification scheduler stopped",
        )
