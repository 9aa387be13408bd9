import hashlib
import logging
import os
import time

import httpx
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from branch_logistics.core.logging import _redact


def is_retryable_exception(exception: BaseException) -> bool:
    """Определяет, является ли исключение основанием для повторной попытки."""
    if isinstance(exception, (httpx.ConnectError, httpx.TimeoutException)):
        return True
    if isinstance(exception, httpx.HTTPStatusError):
        # Повторяем только при серверных ошибках (5xx)
        return 500 <= exception.response.status_code < 600
    return False


LOG_SAMPLE_RATE = float(os.getenv("LOG_SAMPLE_RATE", "1.0"))
LOG_BODY_MAX = int(os.getenv("LOG_BODY_MAX", "2000"))


class BaseApiClient:
    def __init__(self, base_url: str, tries: int = 5, max_wait: float = 60.0, timeout: float = 30.0):
        self.client = httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.tries = tries
        self.max_wait = max_wait
        self._logger = logging.getLogger("http")

    def _maybe_hash(self, body: str) -> str:
        return hashlib.sha256(body.encode("utf-8", "ignore")).hexdigest()[:16]

    async def _request(self, method: str, url: str, **kwargs):
        """Запрос с повторами на сетевых ошибках и 5xx; каждая попытка логируется."""
        t0 = time.perf_counter()
        retrying = AsyncRetrying(
            wait=wait_exponential(multiplier=1, min=0, max=self.max_wait),
            stop=stop_after_attempt(self.tries),
            retry=retry_if_exception(is_retryable_exception),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._send(method, url, attempt.retry_state.attempt_number, t0, **kwargs)
        except httpx.HTTPError as e:
            dt = round((time.perf_counter() - t0) * 1000)
            self._logger.error("HTTP FAIL %s %s: %s", method, url, repr(e),
                               extra={"extra": {"method": method, "url": url, "elapsed_ms": dt}}, exc_info=True)
            raise

    async def _send(self, method: str, url: str, attempt: int, t0: float, **kwargs):
        req_body = kwargs.get("content") or (kwargs.get("json") and str(kwargs["json"])) or ""
        headers = _redact(dict(kwargs.get("headers") or {}))
        self._logger.debug("HTTP %s %s (attempt %d)", method, url, attempt,
                           extra={"extra": {"method": method, "url": url, "attempt": attempt,
                                            "headers": headers, "body_preview": str(req_body)[:LOG_BODY_MAX]}})

        response: httpx.Response = await self.client.request(method, url, **kwargs)
        dt = round((time.perf_counter() - t0) * 1000)

        body_text = response.text or ""
        body_hash = self._maybe_hash(body_text)
        if LOG_SAMPLE_RATE >= 1.0:
            body_preview = body_text[:LOG_BODY_MAX]
        else:
            body_preview = f"[sampled hash:{body_hash}]"

        self._logger.info("HTTP %s %s -> %d in %dms", method, url, response.status_code, dt,
                          extra={"extra": {"method": method, "url": url, "status_code": response.status_code,
                                           "attempt": attempt, "elapsed_ms": dt,
                                           "response_preview": body_preview, "response_hash": body_hash}})

        response.raise_for_status()
        return self._parse_response(response)

    def _parse_response(self, response: httpx.Response):
        # Пустой ответ (например, 204 No Content)
        if response.status_code == 204 or not response.content:
            return {}
        content_type = response.headers.get("content-type", "").lower()
        if "application/json" in content_type:
            try:
                return response.json()
            except ValueError:
                # Некорректный JSON: вызывающему коду тело не нужно
                return {}
        return {}

    async def close(self):
        await self.client.aclose()
