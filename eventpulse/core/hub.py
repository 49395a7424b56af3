"""Per-replica WebSocket fan-out hub.

Every replica pattern-subscribes to ``events:*``. Each broker message is
handed to a single control loop which owns the registry of local sockets
grouped by event and enqueues the frame on every socket of that event
without blocking. A socket whose outbound queue is full is evicted: its
queue is closed, its writer sends a close frame and it leaves the registry.

The originating replica receives its own publishes through the same
subscription, so there is one delivery path for local and remote events.
"""

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import ValidationError as PydanticValidationError
from starlette.requests import HTTPConnection
from starlette.websockets import WebSocketDisconnect

from eventpulse.core.envelope import Envelope, EnvelopeKind
from eventpulse.lib.broker import (
    EVENT_TOPIC_PATTERN,
    Broker,
    BrokerError,
    BrokerMessage,
    event_topic,
)
from eventpulse.lib.logging import get_logger

logger = get_logger(__name__)

NORMAL_CLOSURE = 1000
MESSAGE_TOO_BIG = 1009

_CLOSE = object()


class SocketLike(Protocol):
    """The subset of starlette's WebSocket used by the pumps."""

    async def send_text(self, data: str) -> None: ...

    async def receive(self) -> dict[str, Any]: ...

    async def close(self, code: int = NORMAL_CLOSURE, reason: str | None = None) -> None: ...


class Client:
    """A registered socket with its bounded outbound queue."""

    def __init__(
        self,
        websocket: SocketLike,
        user_id: uuid.UUID,
        event_id: uuid.UUID,
        buffer_size: int = 256,
    ):
        self.websocket = websocket
        self.user_id = user_id
        self.event_id = event_id
        self.buffer_size = buffer_size
        # One extra slot so the close marker always fits after a drain
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=buffer_size + 1)
        self.closed = False
        self.done = asyncio.Event()

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def offer(self, frame: str) -> bool:
        """Non-blocking enqueue. False when the client is closed or its buffer is full."""
        if self.closed or self._queue.qsize() >= self.buffer_size:
            return False
        self._queue.put_nowait(frame)
        return True

    def close(self) -> None:
        """Drop pending frames and tell the writer to close the socket."""
        if self.closed:
            return
        self.closed = True
        while not self._queue.empty():
            self._queue.get_nowait()
        self._queue.put_nowait(_CLOSE)

    async def write_pump(self, write_wait: float, ping_interval: float) -> None:
        """
        Drain the outbound queue onto the socket.

        Sends a ping envelope when the queue stays idle for ping_interval and
        a normal close once the queue is closed.
        """
        ping = Envelope(kind=EnvelopeKind.PING, event_id=self.event_id).encode().decode("utf-8")
        # The pending get survives idle timeouts so a dequeued frame is never lost
        getter: asyncio.Task[Any] | None = None
        try:
            while True:
                if getter is None:
                    getter = asyncio.ensure_future(self._queue.get())
                done, _ = await asyncio.wait({getter}, timeout=ping_interval)
                if getter in done:
                    frame = getter.result()
                    getter = None
                else:
                    frame = ping

                if frame is _CLOSE:
                    await asyncio.wait_for(
                        self.websocket.close(code=NORMAL_CLOSURE), timeout=write_wait
                    )
                    return

                await asyncio.wait_for(self.websocket.send_text(frame), timeout=write_wait)
        except (asyncio.TimeoutError, WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.info(
                "socket_write_stopped",
                user_id=str(self.user_id),
                event_id=str(self.event_id),
                reason=type(e).__name__,
            )
        finally:
            if getter is not None:
                getter.cancel()
            self.closed = True
            self.done.set()

    async def read_pump(self, max_message_size: int) -> None:
        """
        Consume inbound frames until the peer goes away.

        Clients never send commands, so payloads are discarded after the
        size check.
        """
        try:
            while True:
                message = await self.websocket.receive()
                if message["type"] == "websocket.disconnect":
                    return
                payload = message.get("text") or message.get("bytes") or b""
                if isinstance(payload, str):
                    payload = payload.encode("utf-8")
                if len(payload) > max_message_size:
                    logger.warning(
                        "socket_message_too_big",
                        user_id=str(self.user_id),
                        size=len(payload),
                        limit=max_message_size,
                    )
                    await self.websocket.close(code=MESSAGE_TOO_BIG)
                    return
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.debug("socket_read_stopped", user_id=str(self.user_id), reason=type(e).__name__)


@dataclass
class _Register:
    client: Client
    applied: asyncio.Future[None] = field(
        default_factory=lambda: asyncio.get_running_loop().create_future()
    )


@dataclass
class _Deregister:
    client: Client


@dataclass
class _Drain:
    closed: asyncio.Future[list[Client]] = field(
        default_factory=lambda: asyncio.get_running_loop().create_future()
    )


class Hub:
    """Registry of local sockets plus the broker bridge."""

    def __init__(
        self,
        broker: Broker,
        send_buffer: int = 256,
        write_wait: float = 10.0,
        ping_interval: float = 54.0,
        max_message_size: int = 1024,
        shutdown_grace: float = 10.0,
    ):
        self.broker = broker
        self.send_buffer = send_buffer
        self.write_wait = write_wait
        self.ping_interval = ping_interval
        self.max_message_size = max_message_size
        self.shutdown_grace = shutdown_grace

        self._registry: dict[uuid.UUID, set[Client]] = {}
        self._commands: asyncio.Queue[_Register | _Deregister | _Drain | BrokerMessage] = (
            asyncio.Queue()
        )
        self._subscribed = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None
        self._consumer_task: asyncio.Task[None] | None = None
        self._stopping = False

    # Lifecycle

    async def start(self, subscribe_timeout: float = 5.0) -> None:
        """Start the control loop and broker consumer, then wait for the subscription."""
        self._stopping = False
        self._loop_task = asyncio.create_task(self.run(), name="hub-control-loop")
        self._consumer_task = asyncio.create_task(self._consume(), name="hub-broker-consumer")
        try:
            await asyncio.wait_for(self._subscribed.wait(), timeout=subscribe_timeout)
        except asyncio.TimeoutError:
            logger.warning("hub_subscription_pending", timeout_seconds=subscribe_timeout)
        logger.info("hub_started", pattern=EVENT_TOPIC_PATTERN)

    async def drain(self, timeout: float | None = None) -> None:
        """Close every local socket with a normal close and wait for the writers."""
        if self._loop_task is not None and not self._loop_task.done():
            command = _Drain()
            self._commands.put_nowait(command)
            clients = await command.closed
        else:
            clients = self._close_all()
        if not clients:
            return

        grace = self.shutdown_grace if timeout is None else timeout
        try:
            await asyncio.wait_for(
                asyncio.gather(*(client.done.wait() for client in clients)), timeout=grace
            )
        except asyncio.TimeoutError:
            pending = sum(1 for client in clients if not client.done.is_set())
            logger.warning("hub_drain_timeout", pending=pending, timeout_seconds=grace)
        logger.info("hub_drained", closed=len(clients))

    async def shutdown(self) -> None:
        """Stop consuming from the broker, close local sockets and the control loop."""
        self._stopping = True
        for task in (self._consumer_task, self._loop_task):
            if task is not None:
                task.cancel()
        await asyncio.gather(
            *(t for t in (self._consumer_task, self._loop_task) if t is not None),
            return_exceptions=True,
        )
        self._consumer_task = None
        self._loop_task = None
        await self.drain()
        logger.info("hub_stopped")

    # Registration

    async def register(self, client: Client) -> None:
        """Add a client; returns once the control loop has applied it."""
        command = _Register(client)
        self._commands.put_nowait(command)
        await command.applied

    def deregister(self, client: Client) -> None:
        self._commands.put_nowait(_Deregister(client))

    def new_client(self, websocket: SocketLike, user_id: uuid.UUID, event_id: uuid.UUID) -> Client:
        return Client(websocket, user_id, event_id, buffer_size=self.send_buffer)

    async def serve(self, client: Client) -> None:
        """Run a registered client's pumps until its writer stops."""
        reader = asyncio.create_task(client.read_pump(self.max_message_size))
        reader.add_done_callback(lambda _: self.deregister(client))
        try:
            await client.write_pump(self.write_wait, self.ping_interval)
        finally:
            reader.cancel()
            self.deregister(client)

    def connection_count(self, event_id: uuid.UUID | None = None) -> int:
        if event_id is not None:
            return len(self._registry.get(event_id, ()))
        return sum(len(group) for group in self._registry.values())

    # Publishing

    async def publish(
        self,
        event_id: uuid.UUID,
        kind: EnvelopeKind,
        payload: dict[str, Any] | None = None,
    ) -> bool:
        """
        Serialize an envelope and publish it on the event's topic.

        Broker failures are logged and reported as False; callers never fail
        because realtime delivery did.
        """
        envelope = Envelope(kind=kind, event_id=event_id, payload=payload or {})
        topic = event_topic(event_id)
        try:
            await self.broker.publish(topic, envelope.encode())
        except BrokerError as e:
            logger.warning("broker_publish_failed", topic=topic, kind=kind.value, error=str(e))
            return False
        return True

    # Control loop

    async def run(self) -> None:
        """Single owner of the registry. Consumes commands in arrival order."""
        while True:
            command = await self._commands.get()
            if isinstance(command, BrokerMessage):
                self._fan_out(command)
            elif isinstance(command, _Register):
                self._add(command.client)
                if not command.applied.done():
                    command.applied.set_result(None)
            elif isinstance(command, _Deregister):
                self._remove(command.client)
            elif isinstance(command, _Drain):
                if not command.closed.done():
                    command.closed.set_result(self._close_all())

    def _add(self, client: Client) -> None:
        if client.closed:
            return
        self._registry.setdefault(client.event_id, set()).add(client)
        logger.debug(
            "client_registered",
            user_id=str(client.user_id),
            event_id=str(client.event_id),
            connections=len(self._registry[client.event_id]),
        )

    def _remove(self, client: Client) -> None:
        group = self._registry.get(client.event_id)
        if group is not None:
            group.discard(client)
            if not group:
                del self._registry[client.event_id]
        client.close()

    def _close_all(self) -> list[Client]:
        clients = [client for group in self._registry.values() for client in group]
        self._registry.clear()
        for client in clients:
            client.close()
        return clients

    def _fan_out(self, message: BrokerMessage) -> None:
        try:
            envelope = Envelope.decode(message.data)
        except PydanticValidationError:
            logger.warning("envelope_malformed", topic=message.topic, size=len(message.data))
            return

        group = self._registry.get(envelope.event_id)
        if not group:
            return

        frame = message.data.decode("utf-8")
        for client in list(group):
            if not client.offer(frame):
                self._remove(client)
                logger.warning(
                    "client_evicted",
                    user_id=str(client.user_id),
                    event_id=str(client.event_id),
                    buffer_size=client.buffer_size,
                )

    async def _consume(self) -> None:
        """Forward broker messages to the control loop, resubscribing with backoff."""
        delay = 0.5
        while not self._stopping:
            try:
                subscription = await self.broker.subscribe(EVENT_TOPIC_PATTERN)
            except BrokerError as e:
                logger.warning("hub_subscribe_failed", error=str(e), retry_in_seconds=delay)
                await asyncio.sleep(delay)
                delay = min(delay * 2, 10.0)
                continue

            self._subscribed.set()
            delay = 0.5
            try:
                async for message in subscription:
                    self._commands.put_nowait(message)
            except BrokerError as e:
                logger.warning("hub_subscription_lost", error=str(e))
            finally:
                self._subscribed.clear()
                await subscription.close()

            if not self._stopping:
                await asyncio.sleep(delay)


def get_hub(conn: HTTPConnection) -> Hub:
    """Dependency returning the hub started by the application lifespan."""
    return conn.app.state.hub


__all__ = ["Client", "Hub", "NORMAL_CLOSURE", "MESSAGE_TOO_BIG", "get_hub"]
