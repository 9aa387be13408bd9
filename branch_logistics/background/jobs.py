from branch_logistics.core.logging import set_job_name
from branch_logistics.db.session import async_session_factory
from branch_logistics.services.outbox_processor_service import OutboxProcessorService


async def process_outbox_events_job():
    """
    Job-функция для APScheduler, которая доставляет уведомления из outbox.
    """
    set_job_name("process_outbox_events_job")
    async with async_session_factory() as session:
        service = OutboxProcessorService(session=session)
        await service.process_pending_events()
