import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from branch_logistics.api.v1.endpoints import transfer_orders
from branch_logistics.background.jobs import process_outbox_events_job
from branch_logistics.core.config import settings
from branch_logistics.core.errors import (
    ForbiddenError,
    InternalError,
    InvalidStateTransition,
    NotFoundError,
    TransferError,
    ValidationError,
)
from branch_logistics.core.logging import configure_logging, set_run_id
from branch_logistics.db.session import async_session_factory

# Initialize logging before anything else
configure_logging()
set_run_id()  # Set unique run ID for this application instance

logger = logging.getLogger(__name__)

# Создаем и настраиваем планировщик
scheduler = AsyncIOScheduler(timezone=settings.SCHEDULER_TIMEZONE)

# Таксономия ошибок движка -> HTTP-статусы
ERROR_STATUS_CODES: list[tuple[type[TransferError], int]] = [
    (ValidationError, 400),
    (ForbiddenError, 403),
    (NotFoundError, 404),
    (InvalidStateTransition, 409),
    (InternalError, 500),
]


def status_code_for(exc: TransferError) -> int:
    for error_cls, status_code in ERROR_STATUS_CODES:
        if isinstance(exc, error_cls):
            return status_code
    return 400


async def startup_event():
    logger.info("Starting scheduler...")
    scheduler.add_job(
        process_outbox_events_job,
        'interval',
        seconds=settings.OUTBOX_POLL_SECONDS,
        id='process_outbox',
        max_instances=1,
    )
    scheduler.start()
    logger.info("Scheduler started.")


async def shutdown_event():
    logger.info("Shutting down scheduler...")
    scheduler.shutdown()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    on_startup=[startup_event],
    on_shutdown=[shutdown_event]
)


@app.exception_handler(TransferError)
async def transfer_error_handler(request: Request, exc: TransferError):
    return JSONResponse(status_code=status_code_for(exc), content=exc.to_dict())


@app.get("/", tags=["Health Check"])
def read_root():
    return {"status": "ok", "project_name": settings.PROJECT_NAME}


@app.get("/health/db", tags=["Health Check"])
async def health_db():
    """Проверка подключения к базе данных."""
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
        return {"db": "ok"}
    except Exception as e:
        logger.error("DB health check failed", exc_info=True)
        raise HTTPException(status_code=503, detail={"db": "error", "message": str(e)})


app.include_router(transfer_orders.router, prefix="/api/v1", tags=["Transfer Orders"])
