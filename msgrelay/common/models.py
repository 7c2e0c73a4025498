from datetime import datetime, timezone

from pydantic import BaseModel


class Message(BaseModel):
    id: str
    content: str
    timestamp: datetime


class MessageIn(BaseModel):
    # id/timestamp sent by clients are ignored, the producer assigns them
    content: str = ""


class StatusResponse(BaseModel):
    status: str
    hostname: str
    timestamp: str


class FetchMessagesResponse(BaseModel):
    consumer_hostname: str
    timestamp: str
    messages: list[Message]


def rfc3339_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def status_payload(status: str, hostname: str) -> StatusResponse:
    return StatusResponse(status=status, hostname=hostname, timestamp=rfc3339_now())
