import functools
import inspect
import logging
import time
from typing import Callable

from .errors import TransferError
from .logging import _redact

logger = logging.getLogger("steps")


def _log_failure(step: str, exc: Exception, elapsed_ms: int) -> None:
    if isinstance(exc, TransferError) and exc.expected:
        # Отказ по бизнес-правилам (в том числе проигранная гонка) - штатный исход
        logger.info("REFUSED %s: %s", step, exc.code,
                    extra={"extra": {"step": step, "elapsed_ms": elapsed_ms, "error": exc.to_dict()}})
        return
    if isinstance(exc, TransferError):
        # Трассировка уже записана там, где откатили транзакцию
        logger.error("FAILED %s: %s", step, exc.code, extra={"extra": {"step": step, "elapsed_ms": elapsed_ms}})
        return
    logger.error("ERROR %s: %s", step, exc, extra={"extra": {"step": step, "elapsed_ms": elapsed_ms}}, exc_info=True)


def log_step(step: str):
    """
    Логирует вход, выход, тайминги и исключения шага.
    Пример: @log_step("transfers.create")
    """
    def decorator(fn: Callable):
        @functools.wraps(fn)
        async def awrapped(*args, **kwargs):
            t0 = time.perf_counter()
            logger.debug("ENTER %s", step, extra={"extra": {"step": step, "args": _redact(kwargs)}})
            try:
                result = await fn(*args, **kwargs)
            except Exception as e:
                _log_failure(step, e, round((time.perf_counter() - t0) * 1000))
                raise
            dt = round((time.perf_counter() - t0) * 1000)
            logger.info("EXIT %s", step, extra={"extra": {"step": step, "elapsed_ms": dt, "result_preview": str(result)[:200]}})
            return result

        @functools.wraps(fn)
        def wrapped(*args, **kwargs):
            t0 = time.perf_counter()
            logger.debug("ENTER %s", step, extra={"extra": {"step": step, "args": _redact(kwargs)}})
            try:
                result = fn(*args, **kwargs)
            except Exception as e:
                _log_failure(step, e, round((time.perf_counter() - t0) * 1000))
                raise
            dt = round((time.perf_counter() - t0) * 1000)
            logger.info("EXIT %s", step, extra={"extra": {"step": step, "elapsed_ms": dt, "result_preview": str(result)[:200]}})
            return result

        # Выбрать обертку по типу функции (async или sync)
        if inspect.iscoroutinefunction(fn):
            return awrapped
        return wrapped

    return decorator
