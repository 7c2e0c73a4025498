import threading
import time
from datetime import datetime, timezone
from typing import Callable

from msgrelay.common.models import Message


class MessageStore:
    """
    In-memory, insertion-ordered message list owned by the producer process.

    Reads and appends go through one lock, so concurrent requests cannot lose
    appends. Nothing is persisted: the list lives as long as the process.
    """

    def __init__(self, clock: Callable[[], int] = time.time_ns) -> None:
        self._messages: list[Message] = []
        self._lock = threading.Lock()
        self._clock = clock
        self._last_id = 0

    def _next_id(self) -> str:
        # nanosecond timestamp, bumped when the clock has not moved on
        now = self._clock()
        if now <= self._last_id:
            now = self._last_id + 1
        self._last_id = now
        return str(now)

    def list_messages(self) -> list[Message]:
        with self._lock:
            return list(self._messages)

    def append(self, content: str) -> Message:
        with self._lock:
            message = Message(
                id=self._next_id(),
                content=content,
                timestamp=datetime.now(timezone.utc),
            )
            self._messages.append(message)
        return message

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
