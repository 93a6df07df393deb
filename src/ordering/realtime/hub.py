"""Topic-scoped publish/subscribe for live order updates.

Topics:
    order:<order_id>        anyone may subscribe (the tracking page)
    admin                   admin principals only
    customer:<customer_id>  that customer only

Subscriptions belong to a connection and vanish when it disconnects. There
is no replay: a subscriber only sees what is published after it subscribed.
Delivery is best effort; a connection whose ``send`` raises is evicted.

Thread safety: the registry is guarded by an RLock; ``send`` is called
outside the lock so a slow connection never blocks subscribe/unsubscribe.
"""

import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError

from ordering.errors import Forbidden
from ordering.principal import Principal

logger = structlog.get_logger(__name__)

ADMIN_TOPIC = "admin"


def order_topic(order_id) -> str:
    return f"order:{order_id}"


def customer_topic(customer_id) -> str:
    return f"customer:{customer_id}"


class Connection(ABC):
    """One live client session."""

    def __init__(self, connection_id: str, principal: Principal):
        self.id = connection_id
        self.principal = principal

    @abstractmethod
    def send(self, message: dict) -> None:
        """Deliver one message; raise if the connection is gone."""
        ...


def authorize(principal: Principal, topic: str) -> None:
    """Raise unless ``principal`` may subscribe to ``topic``."""
    if topic == ADMIN_TOPIC:
        if not principal.is_admin:
            raise Forbidden("Only admins may subscribe to the admin topic")
        return

    kind, _, key = topic.partition(":")
    if not key:
        raise ValidationError({"topic": [f"Unknown topic {topic}"]})
    if kind == "order":
        return
    if kind == "customer":
        if not principal.owns(key):
            raise Forbidden("Customers may only subscribe to their own topic")
        return
    raise ValidationError({"topic": [f"Unknown topic {topic}"]})


class EventHub:
    """Process-scoped fan-out registry. Build one at startup and inject it."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._connections: dict[str, Connection] = {}
        self._topics: dict[str, set[str]] = defaultdict(set)
        self._stats = {"published": 0, "delivered": 0, "evicted": 0}

    # -------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------
    def connect(self, connection: Connection) -> None:
        with self._lock:
            self._connections[connection.id] = connection
        logger.debug("realtime_connected", connection_id=connection.id)

    def disconnect(self, connection_id: str) -> None:
        with self._lock:
            self._connections.pop(connection_id, None)
            for topic in list(self._topics):
                self._topics[topic].discard(connection_id)
                if not self._topics[topic]:
                    del self._topics[topic]
        logger.debug("realtime_disconnected", connection_id=connection_id)

    def subscribe(self, connection_id: str, topic: str) -> None:
        with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None:
                raise ValidationError({"connection": ["Unknown connection"]})
            authorize(connection.principal, topic)
            self._topics[topic].add(connection_id)

    def unsubscribe(self, connection_id: str, topic: str) -> None:
        with self._lock:
            subscribers = self._topics.get(topic)
            if subscribers is None:
                return
            subscribers.discard(connection_id)
            if not subscribers:
                del self._topics[topic]

    def subscriber_count(self, topic: str) -> int:
        with self._lock:
            return len(self._topics.get(topic, ()))

    def topics_of(self, connection_id: str) -> set[str]:
        with self._lock:
            return {topic for topic, ids in self._topics.items() if connection_id in ids}

    @property
    def stats(self) -> dict:
        with self._lock:
            return dict(self._stats)

    # -------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------
    def publish(self, topic: str, event_type: str, data: dict) -> int:
        """Send to every current subscriber of ``topic``. Returns deliveries made."""
        message = {
            "event": event_type,
            "topic": topic,
            "data": data,
            "published_at": datetime.now(UTC).isoformat(),
        }
        with self._lock:
            targets = [self._connections[cid] for cid in self._topics.get(topic, ()) if cid in self._connections]
            self._stats["published"] += 1

        delivered = 0
        for connection in targets:
            try:
                connection.send(message)
                delivered += 1
            except Exception:
                logger.warning(
                    "realtime_delivery_failed",
                    connection_id=connection.id,
                    topic=topic,
                    event_type=event_type,
                    exc_info=True,
                )
                self.disconnect(connection.id)
                with self._lock:
                    self._stats["evicted"] += 1

        with self._lock:
            self._stats["delivered"] += delivered
        return delivered
