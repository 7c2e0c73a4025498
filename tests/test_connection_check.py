import asyncio
import logging
import time

import httpx
from prometheus_client import CollectorRegistry, Counter

from msgrelay.consumer.connection_check import ConnectionChecker


def _checker(handler, interval=30.0, counter=None):
    logger = logging.getLogger("test-connection-check")
    logger.setLevel(logging.INFO)
    return ConnectionChecker(
        "producer.test:8080",
        interval,
        logger=logger,
        transport=httpx.MockTransport(handler),
        counter=counter,
    )


def _counter():
    registry = CollectorRegistry()
    counter = Counter("producer_connection_checks_total", "checks", ["result"], registry=registry)
    return registry, counter


def test_check_once_success(caplog):
    registry, counter = _counter()
    seen = []

    def handler(request):
        seen.append(str(request.url))
        return httpx.Response(200, text="OK")

    with caplog.at_level(logging.INFO, logger="test-connection-check"):
        result = asyncio.run(_checker(handler, counter=counter).check_once())

    assert result.ok
    assert result.status_code == 200
    assert result.latency_ms is not None and result.latency_ms >= 0
    assert seen == ["http://producer.test:8080/health"]
    assert "connection_check_ok" in caplog.text
    assert registry.get_sample_value("producer_connection_checks_total", {"result": "ok"}) == 1.0


def test_check_once_unexpected_status(caplog):
    registry, counter = _counter()
    with caplog.at_level(logging.INFO, logger="test-connection-check"):
        result = asyncio.run(
            _checker(lambda request: httpx.Response(503, text="draining"), counter=counter).check_once()
        )

    assert not result.ok
    assert result.status_code == 503
    assert result.body == "draining"
    assert "connection_check_unexpected_status" in caplog.text
    assert registry.get_sample_value("producer_connection_checks_total", {"result": "unexpected_status"}) == 1.0


def test_check_once_connection_failure_is_logged_not_raised(caplog):
    registry, counter = _counter()

    def handler(request):
        raise httpx.ConnectError("Name or service not known", request=request)

    with caplog.at_level(logging.INFO, logger="test-connection-check"):
        result = asyncio.run(_checker(handler, counter=counter).check_once())

    assert not result.ok
    assert result.status_code is None
    assert "Name or service not known" in result.error
    assert "connection_check_failed" in caplog.text
    assert registry.get_sample_value("producer_connection_checks_total", {"result": "failed"}) == 1.0


def test_check_once_timeout_reports_error_type():
    def handler(request):
        raise httpx.ReadTimeout("", request=request)

    result = asyncio.run(_checker(handler).check_once())
    assert not result.ok
    assert result.error == "ReadTimeout"


def test_run_checks_immediately_and_periodically():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, text="OK")

    checker = _checker(handler, interval=0.01)

    async def scenario():
        stop = asyncio.Event()
        task = asyncio.create_task(checker.run(stop))
        await asyncio.sleep(0.2)
        stop.set()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(scenario())
    assert len(calls) >= 2


def test_run_stops_without_waiting_for_interval(caplog):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, text="OK")

    checker = _checker(handler, interval=3600)

    async def scenario():
        stop = asyncio.Event()
        task = asyncio.create_task(checker.run(stop))
        await asyncio.sleep(0.05)
        stop.set()
        await asyncio.wait_for(task, timeout=1)

    with caplog.at_level(logging.INFO, logger="test-connection-check"):
        asyncio.run(scenario())

    assert len(calls) == 1
    assert "connection_check_stopped" in caplog.text


def test_check_once_caps_whole_request_for_slow_producer():
    finished = asyncio.Event()

    async def dribble(reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        await reader.readuntil(b"\r\n\r\n")
        try:
            writer.write(b"HTTP/1.1 200 OK\r\nContent-Type: text/plain\r\nContent-Length: 20\r\n\r\n")
            await writer.drain()
            for _ in range(20):
                if finished.is_set():
                    break
                writer.write(b"x")
                await writer.drain()
                await asyncio.sleep(0.3)
        except ConnectionError:
            pass
        finally:
            writer.close()

    async def scenario():
        server = await asyncio.start_server(dribble, "127.0.0.1", 0)
        port = server.sockets[0].getsockname()[1]
        checker = ConnectionChecker(
            f"127.0.0.1:{port}",
            30,
            logger=logging.getLogger("test-connection-check"),
            timeout=0.5,
        )
        async with server:
            start = time.perf_counter()
            result = await checker.check_once()
            elapsed = time.perf_counter() - start
            finished.set()
            return result, elapsed

    # every single read finishes well within the timeout, only the total exceeds it
    result, elapsed = asyncio.run(scenario())
    assert not result.ok
    assert result.error == "TimeoutError"
    assert elapsed < 2.0
