import queue
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from scripter.domain.result import Result

DEFAULT_QUEUE_SIZE = 1024


@dataclass(frozen=True)
class StreamChunk:
    command_line: str
    source: str
    result: Result
    created_at: datetime


class StreamSubscription:
    """Bounded queue of chunks for one subscriber.

    A full queue drops new chunks (counted in ``dropped``) so a slow reader
    never stalls pipe draining.
    """

    def __init__(self, broadcaster: "StreamBroadcaster", maxsize: int):
        self._broadcaster = broadcaster
        self._queue: "queue.Queue[StreamChunk]" = queue.Queue(maxsize=max(1, int(maxsize)))
        self._dropped = 0
        self._dropped_lock = threading.Lock()
        self._closed = False

    @property
    def dropped(self) -> int:
        with self._dropped_lock:
            return self._dropped

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, chunk: StreamChunk) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(chunk)
        except queue.Full:
            with self._dropped_lock:
                self._dropped += 1
            return False
        return True

    def get(self, timeout: Optional[float] = None) -> Optional[StreamChunk]:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> List[StreamChunk]:
        items: List[StreamChunk] = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def close(self) -> None:
        self._closed = True
        self._broadcaster.unsubscribe(self)

    def __enter__(self) -> "StreamSubscription":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class StreamBroadcaster:
    """Process-wide publish point for partial stdout/stderr chunks."""

    def __init__(self, queue_size: int = DEFAULT_QUEUE_SIZE):
        self._queue_size = max(1, int(queue_size))
        self._lock = threading.Lock()
        self._subscribers: List[StreamSubscription] = []

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, maxsize: Optional[int] = None) -> StreamSubscription:
        subscription = StreamSubscription(self, maxsize or self._queue_size)
        with self._lock:
            self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: StreamSubscription) -> None:
        with self._lock:
            if subscription in self._subscribers:
                self._subscribers.remove(subscription)

    def publish(self, command_line: str, source: str, result: Result) -> StreamChunk:
        chunk = StreamChunk(
            command_line=command_line,
            source=source,
            result=result,
            created_at=datetime.now(timezone.utc),
        )
        with self._lock:
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            subscription.offer(chunk)
        return chunk
