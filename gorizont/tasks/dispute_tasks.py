from gorizont.common.logging import get_logger
from gorizont.tasks.celery_app import app, run_async

logger = get_logger("tasks.dispute")


@app.task(name="gorizont.tasks.dispute_tasks.check_all_escalations")
def check_all_escalations():
    """Celery Beat task: escalate disputes that sat too long without a status change."""
    logger.info("Checking dispute escalations")

    async def _check():
        from gorizont.core.disputes.service import DisputeService
        from gorizont.db.session import async_session_factory

        async with async_session_factory() as db:
            try:
                service = DisputeService()
                escalated = await service.check_escalations(db)
                await db.commit()

                if escalated:
                    logger.info("Auto-escalated %d disputes", len(escalated))
                return escalated
            except Exception as e:
                await db.rollback()
                logger.error("Escalation check failed: %s", e)
                raise

    return run_async(_check())
