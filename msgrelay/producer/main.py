"""
Producer Service
Keeps an in-memory list of messages and exposes it over HTTP.
"""
import uvicorn
from fastapi import FastAPI, Depends
from fastapi.responses import PlainTextResponse

from msgrelay.common.config import HOST, LOG_LEVEL, positive_int_env, get_hostname
from msgrelay.common.models import Message, MessageIn, StatusResponse, status_payload
from msgrelay.common.logging_utils import (
    get_json_logger,
    log_event,
    RequestLogMiddleware,
    setup_exception_logging,
)
from msgrelay.common.body import MESSAGE_IN_OPENAPI, message_body
from msgrelay.common.observability import instrument_fastapi
from msgrelay.producer.store import MessageStore

SERVICE_NAME = "producer-service"
PORT = positive_int_env("PORT", 8080)
HOSTNAME = get_hostname()

logger = get_json_logger(SERVICE_NAME)

store = MessageStore()


def get_store() -> MessageStore:
    return store


app = FastAPI(title="Producer Service")
instrument_fastapi(app, SERVICE_NAME)
app.add_middleware(RequestLogMiddleware, logger=logger, hostname=HOSTNAME)
setup_exception_logging(app, logger)


@app.get("/", response_model=StatusResponse)
async def index():
    return status_payload("Producer service running", HOSTNAME)


@app.get("/health", response_class=PlainTextResponse)
async def health():
    return "OK"


@app.get("/messages", response_model=list[Message])
async def list_messages(store: MessageStore = Depends(get_store)):
    return store.list_messages()


@app.post("/messages", status_code=201, openapi_extra=MESSAGE_IN_OPENAPI, response_model=Message)
async def create_message(body: MessageIn = Depends(message_body), store: MessageStore = Depends(get_store)):
    message = store.append(body.content)
    log_event(logger, "message_created", id=message.id)
    return message


def run() -> None:
    log_event(logger, "service_starting", service=SERVICE_NAME, port=PORT)
    uvicorn.run(app, host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
