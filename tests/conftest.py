import httpx
import pytest
from fastapi.testclient import TestClient

from msgrelay.consumer import main as consumer_main
from msgrelay.consumer.producer_client import ProducerClient
from msgrelay.producer import main as producer_main
from msgrelay.producer.store import MessageStore


@pytest.fixture
def store():
    return MessageStore()


@pytest.fixture
def producer(store):
    producer_main.app.dependency_overrides[producer_main.get_store] = lambda: store
    yield TestClient(producer_main.app)
    producer_main.app.dependency_overrides.clear()


def _consumer_with(client: ProducerClient):
    consumer_main.app.dependency_overrides[consumer_main.get_producer_client] = lambda: client
    return TestClient(consumer_main.app)


@pytest.fixture
def consumer(producer):
    """Consumer wired to the in-process producer app (shares the `store` fixture)."""
    client = ProducerClient("producer.test", transport=httpx.ASGITransport(app=producer_main.app))
    yield _consumer_with(client)
    consumer_main.app.dependency_overrides.clear()


@pytest.fixture
def consumer_for():
    """Build a consumer whose producer is answered by `handler` (an httpx.MockTransport handler)."""

    def _make(handler):
        client = ProducerClient("producer.test", transport=httpx.MockTransport(handler))
        return _consumer_with(client)

    yield _make
    consumer_main.app.dependency_overrides.clear()
