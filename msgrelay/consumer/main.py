"""
Consumer Service
Relays message reads/creates to the producer and checks its health in the background.
"""
import os
import logging
import asyncio
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Depends, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import Counter

from msgrelay.common.config import HOST, LOG_LEVEL, positive_int_env, bool_env, get_hostname
from msgrelay.common.models import MessageIn, StatusResponse, FetchMessagesResponse, rfc3339_now, status_payload
from msgrelay.common.logging_utils import (
    get_json_logger,
    log_event,
    RequestLogMiddleware,
    setup_exception_logging,
)
from msgrelay.common.body import MESSAGE_IN_OPENAPI, message_body
from msgrelay.common.observability import instrument_fastapi
from msgrelay.consumer.connection_check import ConnectionChecker
from msgrelay.consumer.producer_client import ProducerClient, ProducerError

SERVICE_NAME = "consumer-service"
PORT = positive_int_env("PORT", 8081)
PRODUCER_HOST = os.getenv("PRODUCER_HOST") or "producer:8080"
CONNECTION_CHECK_INTERVAL = positive_int_env("CONNECTION_CHECK_INTERVAL", 30)
CONNECTION_CHECK_ENABLED = bool_env("CONNECTION_CHECK_ENABLED", True)
HOSTNAME = get_hostname()

logger = get_json_logger(SERVICE_NAME)

producer_client: ProducerClient | None = None
connection_check_task: asyncio.Task | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global producer_client, connection_check_task
    producer_client = ProducerClient(PRODUCER_HOST)
    connection_check_task = None
    stop = asyncio.Event()
    if CONNECTION_CHECK_ENABLED:
        checker = ConnectionChecker(
            PRODUCER_HOST,
            CONNECTION_CHECK_INTERVAL,
            logger=logger,
            counter=connection_checks,
        )
        connection_check_task = asyncio.create_task(checker.run(stop))
        log_event(logger, "connection_check_started", producer_host=PRODUCER_HOST, interval_seconds=CONNECTION_CHECK_INTERVAL)
    yield
    stop.set()
    if connection_check_task:
        await connection_check_task
    await producer_client.aclose()


def get_producer_client() -> ProducerClient:
    if producer_client is None:
        raise RuntimeError("producer client not initialised")
    return producer_client


app = FastAPI(title="Consumer Service", lifespan=lifespan)
metrics = instrument_fastapi(app, SERVICE_NAME)
connection_checks = Counter(
    "producer_connection_checks_total",
    "Producer health checks by outcome",
    ["result"],
    registry=metrics.registry,
)
app.add_middleware(RequestLogMiddleware, logger=logger, hostname=HOSTNAME, context={"producer_host": PRODUCER_HOST})
setup_exception_logging(app, logger)


@app.get("/", response_model=StatusResponse)
async def index():
    return status_payload("Consumer service running", HOSTNAME)


@app.get("/health", response_class=PlainTextResponse)
async def health():
    return "OK"


@app.get("/fetch-messages", response_model=FetchMessagesResponse)
async def fetch_messages(client: ProducerClient = Depends(get_producer_client)):
    try:
        messages = await client.fetch_messages()
    except ProducerError as e:
        log_event(logger, "producer_error", level=logging.WARNING, action="fetch_messages", error=str(e))
        raise HTTPException(500, f"Error fetching messages: {e}")
    return FetchMessagesResponse(consumer_hostname=HOSTNAME, timestamp=rfc3339_now(), messages=messages)


@app.post("/create-message", status_code=201, openapi_extra=MESSAGE_IN_OPENAPI)
async def create_message(body: MessageIn = Depends(message_body), client: ProducerClient = Depends(get_producer_client)):
    try:
        created = await client.create_message(body)
    except ProducerError as e:
        log_event(logger, "producer_error", level=logging.WARNING, action="create_message", error=str(e))
        raise HTTPException(500, f"Error creating message: {e}")
    return JSONResponse(status_code=201, content=created)


def run() -> None:
    log_event(
        logger,
        "service_starting",
        service=SERVICE_NAME,
        port=PORT,
        producer_host=PRODUCER_HOST,
        connection_check_interval=CONNECTION_CHECK_INTERVAL,
        connection_check_enabled=CONNECTION_CHECK_ENABLED,
    )
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
