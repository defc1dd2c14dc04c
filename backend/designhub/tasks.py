"""Celery background tasks."""

import asyncio

import structlog

from designhub.worker import celery_app

logger = structlog.get_logger()


@celery_app.task(bind=True, name="designhub.tasks.dispatch_outbox")
def dispatch_outbox(self) -> dict:
    """
    Sweep pending outbox events into notifications.

    Request handlers dispatch their own events right after the response;
    this sweep picks up anything left behind (crashed workers, handler
    failures awaiting retry).
    """
    async def _process():
        from designhub.db.session import async_session_factory, engine
        from designhub.services.outbox import OutboxDispatcher

        try:
            return await OutboxDispatcher(async_session_factory).dispatch()
        finally:
            # Pooled connections are bound to this run's event loop
            await engine.dispose()

    try:
        dispatched = asyncio.run(_process())
        logger.info("outbox_sweep_completed", dispatched=dispatched)
        return {"status": "success", "dispatched": dispatched}
    except Exception as e:
        logger.error("outbox_sweep_failed", error=str(e))
        return {"status": "error", "error": str(e)}


@celery_app.task(bind=True, name="designhub.tasks.purge_expired_notifications")
def purge_expired_notifications(self) -> dict:
    """Delete notifications whose expiry has passed. Scheduled daily."""
    async def _process():
        from designhub.db.session import async_session_factory, engine
        from designhub.services.notification import NotificationService

        try:
            async with async_session_factory() as db:
                removed = await NotificationService(db).purge_expired()
                await db.commit()
                return removed
        finally:
            await engine.dispose()

    try:
        removed = asyncio.run(_process())
        logger.info("expired_notifications_purged", removed=removed)
        return {"status": "success", "removed": removed}
    except Exception as e:
        logger.error("expired_notifications_purge_failed", error=str(e))
        return {"status": "error", "error": str(e)}
