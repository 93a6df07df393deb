"""WebSocket endpoint bridging browser sessions to the EventHub.

Client → server:  {"action": "subscribe" | "unsubscribe", "topic": "order:<id>"}
Server → client:  {"event": "subscribed" | "unsubscribed" | "error", ...}
                  {"event": "<event type>", "topic": ..., "data": {...}}

The principal comes from the ``principal_id`` / ``role`` / ``permissions``
query parameters, falling back to the ``X-Principal-*`` headers.
"""

import asyncio
import json
from uuid import uuid4

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from protean.exceptions import ValidationError

from ordering.api.dependencies import principal_from
from ordering.api.errors import error_body
from ordering.errors import Forbidden
from ordering.realtime.hub import Connection, EventHub

logger = structlog.get_logger(__name__)

realtime_router = APIRouter(tags=["realtime"])


class QueueConnection(Connection):
    """Hands messages to the socket's sender task through an asyncio queue.

    ``send`` may be called from any thread; it never blocks.
    """

    def __init__(self, connection_id, principal, loop: asyncio.AbstractEventLoop):
        super().__init__(connection_id, principal)
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def send(self, message: dict) -> None:
        if self.closed:
            raise ConnectionError(f"Connection {self.id} is closed")
        self.loop.call_soon_threadsafe(self.queue.put_nowait, message)


def handle_client_message(hub: EventHub, connection: Connection, raw: str) -> dict:
    """Apply one client message and return the reply."""
    try:
        message = json.loads(raw)
    except ValueError:
        return {"event": "error", "error": "Message is not valid JSON"}
    if not isinstance(message, dict):
        return {"event": "error", "error": "Message must be a JSON object"}

    action = message.get("action")
    topic = message.get("topic")
    if not isinstance(topic, str) or not topic:
        return {"event": "error", "error": "A topic is required", "topic": topic}

    if action == "subscribe":
        try:
            hub.subscribe(connection.id, topic)
        except (Forbidden, ValidationError) as exc:
            return {"event": "error", "topic": topic, **error_body(exc)}
        return {"event": "subscribed", "topic": topic}
    if action == "unsubscribe":
        hub.unsubscribe(connection.id, topic)
        return {"event": "unsubscribed", "topic": topic}
    return {"event": "error", "error": f"Unknown action {action}", "topic": topic}


async def _pump(websocket: WebSocket, connection: QueueConnection) -> None:
    """Drain the queue onto the socket until a send fails.

    Marking the connection closed makes the hub's next publish evict it.
    """
    while True:
        message = await connection.queue.get()
        try:
            await websocket.send_json(message)
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            logger.info("websocket_send_failed", connection_id=connection.id, error=str(exc))
            connection.closed = True
            return


@realtime_router.websocket("/ws")
async def realtime(websocket: WebSocket):
    params = websocket.query_params
    headers = websocket.headers
    try:
        principal = principal_from(
            params.get("principal_id") or headers.get("x-principal-id"),
            params.get("role") or headers.get("x-principal-role"),
            params.get("permissions") or headers.get("x-principal-permissions"),
        )
    except ValidationError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    hub: EventHub = websocket.app.state.services.hub
    connection = QueueConnection(uuid4().hex, principal, asyncio.get_running_loop())
    hub.connect(connection)
    sender = asyncio.create_task(_pump(websocket, connection))

    try:
        while True:
            raw = await websocket.receive_text()
            connection.queue.put_nowait(handle_client_message(hub, connection, raw))
    except WebSocketDisconnect:
        logger.debug("websocket_closed", connection_id=connection.id)
    finally:
        connection.closed = True
        hub.disconnect(connection.id)
        sender.cancel()
