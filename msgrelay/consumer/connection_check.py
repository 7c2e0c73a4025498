"""
Periodic connectivity check against the producer's /health endpoint.
Only logs the outcome: no retry, no backoff, no alerting.
"""
import asyncio
import logging
import time
from dataclasses import dataclass

import httpx
from prometheus_client import Counter

from msgrelay.common.logging_utils import log_event, log_error_event

HEALTH_TIMEOUT = 5.0


@dataclass
class CheckResult:
    ok: bool
    status_code: int | None = None
    latency_ms: int | None = None
    body: str = ""
    error: str | None = None


class ConnectionChecker:
    def __init__(
        self,
        producer_host: str,
        interval: float,
        logger: logging.Logger,
        timeout: float = HEALTH_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        counter: Counter | None = None,
    ) -> None:
        self.producer_host = producer_host
        self.interval = interval
        self.timeout = timeout
        self.logger = logger
        self._transport = transport
        self._counter = counter

    def _record(self, result: str) -> None:
        if self._counter is not None:
            self._counter.labels(result=result).inc()

    async def check_once(self) -> CheckResult:
        url = f"http://{self.producer_host}/health"
        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                # httpx timeouts are per phase, the whole request is capped here
                resp = await asyncio.wait_for(client.get(url), self.timeout)
        except (httpx.HTTPError, asyncio.TimeoutError) as e:
            # timeouts stringify to ""
            error = str(e) or type(e).__name__
            log_error_event(
                self.logger,
                "connection_check_failed",
                producer_host=self.producer_host,
                error=error,
                error_type=type(e).__name__,
            )
            self._record("failed")
            return CheckResult(ok=False, error=error)

        latency_ms = int((time.perf_counter() - start) * 1000)
        if resp.status_code == 200:
            log_event(
                self.logger,
                "connection_check_ok",
                producer_host=self.producer_host,
                status=resp.status_code,
                latency_ms=latency_ms,
            )
            self._record("ok")
            return CheckResult(ok=True, status_code=resp.status_code, latency_ms=latency_ms, body=resp.text)

        log_event(
            self.logger,
            "connection_check_unexpected_status",
            producer_host=self.producer_host,
            status=resp.status_code,
            body=resp.text,
            latency_ms=latency_ms,
        )
        self._record("unexpected_status")
        return CheckResult(ok=False, status_code=resp.status_code, latency_ms=latency_ms, body=resp.text)

    async def run(self, stop: asyncio.Event) -> None:
        """Check now, then once per interval until `stop` is set."""
        await self.check_once()
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self.check_once()
        log_event(self.logger, "connection_check_stopped", producer_host=self.producer_host)
