"""HTTP client for the producer service API."""
from typing import Any

import httpx
from pydantic import TypeAdapter, ValidationError

from msgrelay.common.models import Message, MessageIn

# an empty producer may answer null
_messages_adapter = TypeAdapter(list[Message] | None)


class ProducerError(Exception):
    """The producer could not be reached or answered with something unusable."""


class ProducerClient:
    def __init__(self, producer_host: str, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.producer_host = producer_host
        # relay calls wait for the producer as long as it takes
        self._client = httpx.AsyncClient(
            base_url=f"http://{producer_host}",
            transport=transport,
            timeout=None,
        )

    async def fetch_messages(self) -> list[Message]:
        try:
            resp = await self._client.get("/messages")
        except httpx.HTTPError as e:
            raise ProducerError(f"failed to connect to producer service: {e}") from e

        if resp.status_code != 200:
            raise ProducerError(
                f"producer service returned non-200 status code: {resp.status_code} - {resp.text}"
            )

        try:
            messages = _messages_adapter.validate_json(resp.content)
        except ValidationError as e:
            raise ProducerError(f"failed to decode response: {e}") from e
        return messages or []

    async def create_message(self, message: MessageIn) -> Any:
        """POST the message to the producer and return its JSON reply untouched."""
        try:
            resp = await self._client.post("/messages", json=message.model_dump())
        except httpx.HTTPError as e:
            raise ProducerError(f"failed to connect to producer service: {e}") from e

        if resp.status_code != 201:
            raise ProducerError(
                f"producer service returned non-201 status code: {resp.status_code} - {resp.text}"
            )

        try:
            return resp.json()
        except ValueError as e:
            raise ProducerError(f"failed to decode response: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
