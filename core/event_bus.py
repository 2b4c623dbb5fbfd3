"""Single-writer publishing channel for notchdeck.

The decision loop is the only writer: the activation state machine, the
refresh orchestrator and the focus timer publish immutable payloads here.
Consumers either subscribe (callbacks run on the decision loop, right
after the publish), poll get_latest(), or pull from stream() on another
thread (the web status server does this).
"""

import logging
import threading
from queue import Empty, Full, Queue
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)


class EventBus:
    """Latest-value store plus fan-out, written only from its owner thread."""

    def __init__(self, stream_queue_size: int = 100):
        self._owner = threading.get_ident()
        self._latest: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._stream_clients: List[Queue] = []
        self._stream_queue_size = stream_queue_size
        self._subscribers: Dict[str, List[Callable]] = {}

    def bind_to_current_thread(self):
        """Make the calling thread the single writer (call from the loop thread)."""
        self._owner = threading.get_ident()

    def publish(self, topic: str, payload: Any):
        """Publish a payload. Must be called from the owner thread."""
        if threading.get_ident() != self._owner:
            raise RuntimeError(f"EventBus.publish({topic!r}) called off the decision loop")

        with self._lock:
            self._latest[topic] = payload
            clients = list(self._stream_clients)

        dead = []
        for q in clients:
            try:
                q.put_nowait((topic, payload))
            except Full:
                dead.append(q)
        if dead:
            with self._lock:
                self._stream_clients = [q for q in self._stream_clients if q not in dead]
            logger.debug("EventBus dropped %d stalled stream client(s)", len(dead))

        for cb in list(self._subscribers.get(topic, [])):
            try:
                cb(payload)
            except Exception as exc:
                logger.error("EventBus callback error [%s]: %s", topic, exc)

    def subscribe(self, topic: str, callback: Callable):
        """Register a callback for a topic. Called on the decision loop."""
        if topic not in self._subscribers:
            self._subscribers[topic] = []
        self._subscribers[topic].append(callback)

    def unsubscribe(self, topic: str, callback: Callable):
        """Remove a callback."""
        if topic in self._subscribers:
            self._subscribers[topic] = [
                cb for cb in self._subscribers[topic] if cb != callback
            ]

    def get_latest(self, topic: Optional[str] = None) -> Any:
        """Latest payload for a topic, or a copy of all topics. Thread-safe."""
        with self._lock:
            if topic:
                return self._latest.get(topic)
            return dict(self._latest)

    def stream(self, keepalive: float = 30.0) -> Iterator[Tuple[str, Any]]:
        """Blocking generator of (topic, payload) for another thread.

        Yields ("keepalive", None) when nothing arrives within keepalive
        seconds. The client is removed when the generator is closed. A client
        dropped for falling behind gets what is already queued, then the
        generator ends so the caller can reconnect.
        """
        q: Queue = Queue(maxsize=self._stream_queue_size)
        with self._lock:
            self._stream_clients.append(q)
        try:
            while True:
                try:
                    item = q.get(timeout=keepalive)
                except Empty:
                    if self._dropped(q):
                        logger.debug("EventBus stream ended for dropped client")
                        return
                    yield "keepalive", None
                    continue
                yield item
                if q.empty() and self._dropped(q):
                    logger.debug("EventBus stream ended for dropped client")
                    return
        finally:
            with self._lock:
                if q in self._stream_clients:
                    self._stream_clients.remove(q)

    def _dropped(self, q: Queue) -> bool:
        with self._lock:
            return q not in self._stream_clients
