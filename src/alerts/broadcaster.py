"""
Realtime fan-out of incident changes.

Delivery is best-effort and fire-and-forget: a sink that fails is logged
and skipped, and the mutation that triggered the broadcast stands.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from src.triage.models import Incident

logger = logging.getLogger(__name__)

DEFAULT_TOPIC = "/topic/incidents"
DEFAULT_SUBSCRIBER_QUEUE_SIZE = 100


class BroadcastSink(ABC):
    """Accepts a serialized snapshot for a topic."""

    @abstractmethod
    def send(self, topic: str, payload: Dict[str, Any]) -> None:
        """Deliver one message. May raise; callers swallow failures."""


class LoggingSink(BroadcastSink):
    """Writes each message to the log."""

    def send(self, topic: str, payload: Dict[str, Any]) -> None:
        logger.debug(f"[{topic}] {payload.get('incident_id')} status={payload.get('status')}")


@dataclass
class BroadcastMessage:
    """Message captured by a RecordingSink."""
    topic: str
    payload: Dict[str, Any]
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class RecordingSink(BroadcastSink):
    """Keeps every message in memory, newest last."""

    def __init__(self):
        self.messages: List[BroadcastMessage] = []
        self._lock = threading.Lock()

    def send(self, topic: str, payload: Dict[str, Any]) -> None:
        with self._lock:
            self.messages.append(BroadcastMessage(topic=topic, payload=payload))

    def clear(self) -> None:
        with self._lock:
            self.messages.clear()


class ConnectionManager(BroadcastSink):
    """
    WebSocket subscribers of the incident feed.

    ``send`` may be called from worker threads; messages are handed to the
    event loop that owns the sockets. Each subscriber buffers at most
    ``max_queue_size`` messages; a slow subscriber misses newer ones.
    """

    def __init__(self, max_queue_size: int = DEFAULT_SUBSCRIBER_QUEUE_SIZE):
        self.max_queue_size = max_queue_size
        self._subscribers: Dict[Any, asyncio.Queue] = {}
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def connect(self, websocket) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)
        with self._lock:
            self._loop = asyncio.get_running_loop()
            self._subscribers[websocket] = queue
        await websocket.accept()
        logger.info(f"WebSocket subscriber connected ({self.subscriber_count} total)")
        return queue

    def disconnect(self, websocket) -> None:
        with self._lock:
            self._subscribers.pop(websocket, None)
        logger.info(f"WebSocket subscriber disconnected ({self.subscriber_count} total)")

    def send(self, topic: str, payload: Dict[str, Any]) -> None:
        message = {"topic": topic, "payload": payload}
        with self._lock:
            queues = list(self._subscribers.values())
            loop = self._loop
        if not queues or loop is None:
            return
        for queue in queues:
            loop.call_soon_threadsafe(self._offer, queue, message)

    @staticmethod
    def _offer(queue: asyncio.Queue, message: Dict[str, Any]) -> None:
        try:
            queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(
                f"Subscriber queue full, dropped {message['payload'].get('incident_id')}"
            )

    async def stream(self, websocket, queue: asyncio.Queue) -> None:
        """Forward queued messages to one socket until cancelled or the send fails."""
        while True:
            message = await queue.get()
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.info(f"WebSocket send failed, stopping stream: {e}")
                return


class IncidentBroadcaster:
    """Publishes incident snapshots to every configured sink."""

    def __init__(self, sinks: Optional[List[BroadcastSink]] = None, topic: str = DEFAULT_TOPIC):
        self.sinks = list(sinks) if sinks is not None else [LoggingSink()]
        self.topic = topic

    def add_sink(self, sink: BroadcastSink) -> None:
        self.sinks.append(sink)

    def publish(self, incident: "Incident") -> int:
        """
        Broadcast an incident snapshot.

        Args:
            incident: Committed incident state

        Returns:
            Number of sinks that accepted the message
        """
        payload = incident.to_dict()
        delivered = 0
        for sink in self.sinks:
            try:
                sink.send(self.topic, payload)
                delivered += 1
            except Exception as e:
                logger.warning(
                    f"Broadcast of {incident.incident_id} via {type(sink).__name__} failed: {e}"
                )
        return delivered
