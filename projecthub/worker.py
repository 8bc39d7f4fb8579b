"""
ARQ Worker Configuration

Background job processing with Redis-backed task queue.
Runs the due-date reminder sweep and long archive/restore runs queued by
the API.

Run with:
    arq projecthub.worker.WorkerSettings
"""

import logging
from datetime import datetime, timezone
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from .config import settings
from .database import async_session_maker
from .services.archive_service import (
    GraphArchiver,
    GraphRestorer,
    GraphTransferError,
    ProjectNotFoundError,
)
from .services.document_store import SqlDocumentStore
from .services.notification_service import NotificationService
from .services.project_lock_service import ProjectLockedError
from .services.redis_service import redis_service
from .services.reminder_service import send_due_date_reminders

logger = logging.getLogger(__name__)


def parse_redis_url(url: str) -> RedisSettings:
    """ARQ connection settings for ``redis://[:password@]host[:port][/db]``."""
    return RedisSettings.from_dsn(url)


def _store(ctx: dict[str, Any]) -> SqlDocumentStore:
    return ctx.get("store") or SqlDocumentStore(async_session_maker)


def _failed(project_id: str, error: Exception) -> dict[str, Any]:
    result: dict[str, Any] = {"project_id": project_id, "status": "failed", "error": str(error)}
    if isinstance(error, GraphTransferError):
        result.update(
            stage=error.stage.value,
            chunks_committed=error.chunks_committed,
            total_chunks=error.total_chunks,
        )
    return result


# =============================================================================
# Reminder Jobs
# =============================================================================


async def run_due_date_reminders(ctx: dict[str, Any]) -> dict[str, Any]:
    """
    Send deadline reminders for todos due today or within the look-ahead.

    Returns:
        dict with sweep counts
    """
    logger.info("Running scheduled due-date reminders...")

    store = _store(ctx)
    counts: dict[str, Any] = {}
    try:
        result = await send_due_date_reminders(store, NotificationService(store))
        counts = result.to_dict()
    except Exception as e:
        logger.error(f"Error running due-date reminders: {e}", exc_info=True)

    return {**counts, "run_at": datetime.now(timezone.utc).isoformat()}


# =============================================================================
# Archive Jobs
# =============================================================================


async def run_archive_project(ctx: dict[str, Any], project_id: str, actor_id: str) -> dict[str, Any]:
    """Archive a project in the background. Re-enqueue to resume a failed run."""
    try:
        archiver = GraphArchiver(_store(ctx), lock=redis_service.project_lock())
        report = await archiver.archive(project_id, actor_id)
    except (GraphTransferError, ProjectLockedError, ProjectNotFoundError) as e:
        logger.error(f"Background archive of {project_id} stopped: {e}")
        return _failed(project_id, e)
    return {"project_id": project_id, "status": "done", "stages": len(report.stages)}


async def run_restore_project(ctx: dict[str, Any], project_id: str, actor_id: str) -> dict[str, Any]:
    """Restore a project in the background. Re-enqueue to resume a failed run."""
    try:
        restorer = GraphRestorer(_store(ctx), lock=redis_service.project_lock())
        report = await restorer.restore(project_id, actor_id)
    except (GraphTransferError, ProjectLockedError, ProjectNotFoundError) as e:
        logger.error(f"Background restore of {project_id} stopped: {e}")
        return _failed(project_id, e)
    return {"project_id": project_id, "status": "done", "stages": len(report.stages)}


# =============================================================================
# Startup/Shutdown Hooks
# =============================================================================


async def startup(ctx: dict[str, Any]) -> None:
    """Share one document store across jobs; connect Redis for project locks."""
    ctx["store"] = SqlDocumentStore(async_session_maker)
    try:
        await redis_service.connect()
    except Exception as e:
        logger.warning(f"Worker running without project locks, Redis unavailable: {e}")
    logger.info("Worker started")


async def shutdown(ctx: dict[str, Any]) -> None:
    await redis_service.disconnect()
    logger.info("Worker stopped")


# =============================================================================
# Schedule Parsing
# =============================================================================


def parse_schedule_set(value: str) -> set[int]:
    """
    Parse a comma-separated string of integers into a set.

    Examples:
        "9" -> {9}
        "8,17" -> {8, 17}
    """
    return {int(x.strip()) for x in value.split(",") if x.strip()}


def build_reminder_cron():
    """Build the reminder cron job from ARQ_REMINDER_HOURS (default 09:00)."""
    hours = parse_schedule_set(settings.arq_reminder_hours) or {9}
    return cron(run_due_date_reminders, hour=hours, minute=0, second=0)


# =============================================================================
# Worker Settings
# =============================================================================


class WorkerSettings:
    """ARQ worker configuration."""

    # Redis connection
    redis_settings = parse_redis_url(settings.redis_url)

    # Job functions that can be called via arq.enqueue_job()
    functions = [
        run_due_date_reminders,
        run_archive_project,
        run_restore_project,
    ]

    # Scheduled cron jobs (configured via .env)
    # ARQ_REMINDER_HOURS: comma-separated hours (default "9")
    cron_jobs = [
        build_reminder_cron(),
    ]

    # Lifecycle hooks
    on_startup = startup
    on_shutdown = shutdown

    # Worker behavior
    max_jobs = 10  # Max concurrent jobs
    job_timeout = 1800  # Large project graphs take a while
    keep_result = 3600  # Keep results for 1 hour

    # Health check
    health_check_interval = 30
