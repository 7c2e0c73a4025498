"""
Request body decoding for message create endpoints.

The body is read as JSON whatever the Content-Type says. `null` decodes to an
empty message; an empty body or anything that is not a message object is a
400 carrying the decode error.
"""
import json
from typing import Any

from fastapi import HTTPException, Request
from pydantic import ValidationError

from msgrelay.common.models import MessageIn

MESSAGE_IN_OPENAPI = {
    "requestBody": {
        "required": True,
        "content": {"application/json": {"schema": MessageIn.model_json_schema()}},
    }
}


def format_errors(errors: list[dict[str, Any]]) -> str:
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "invalid request body"


def parse_message_in(raw: bytes) -> MessageIn:
    if not raw.strip():
        raise ValueError("empty request body")
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ValueError(f"invalid JSON body: {e}") from e
    if data is None:
        return MessageIn()
    try:
        return MessageIn.model_validate(data)
    except ValidationError as e:
        raise ValueError(format_errors(e.errors())) from e


async def message_body(request: Request) -> MessageIn:
    """FastAPI dependency: decode the request body into a MessageIn or answer 400."""
    try:
        return parse_message_in(await request.body())
    except ValueError as e:
        raise HTTPException(400, str(e)) from e
