"""
Webull WebSocket Client - supervised real-time event stream.

Provides async WebSocket connection management for quote, order,
account and trade streams.

Features:
- Supervisor task with bounded auto-reconnect (fixed delay)
- Heartbeat when the socket has been idle for a full interval
- Subscription tracking and replay after reconnect
- Events delivered through a single EventStream consumed by the caller
"""

from __future__ import annotations

import asyncio
import json
import threading
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK, WebSocketException
from loguru import logger

from .auth import AccessToken, AuthManager
from .errors import InvalidRequest, NetworkError, WebullError
from .ws_events import (
    AUTH_ERROR,
    PARSE_ERROR,
    PONG_ERROR,
    WS_CONNECT_ERROR,
    WS_ERROR,
    ConnectionState,
    Event,
    decode_event,
)
from .ws_subscription import SUBSCRIBE, UNSUBSCRIBE, SubscriptionRequest


# ============================================================================
# Connection abstraction
# ============================================================================

class FrameType(str, Enum):
    TEXT = "TEXT"
    BINARY = "BINARY"
    PING = "PING"
    PONG = "PONG"
    CLOSE = "CLOSE"


@dataclass
class Frame:
    """One inbound WebSocket frame."""

    frame_type: FrameType
    data: Union[str, bytes] = ""


class WebSocketConnection(ABC):
    """Minimal duplex socket surface the streaming client drives."""

    @abstractmethod
    async def recv(self) -> Frame:
        """Wait for the next frame. Raises NetworkError on abnormal closure."""

    @abstractmethod
    async def send_text(self, text: str) -> None:
        pass

    @abstractmethod
    async def ping(self, data: bytes = b"") -> None:
        pass

    @abstractmethod
    async def pong(self, data: bytes = b"") -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass


Connector = Callable[[str, Dict[str, str]], Awaitable[WebSocketConnection]]


class WebsocketsConnection(WebSocketConnection):
    """
    WebSocketConnection backed by the ``websockets`` library.

    The library answers server pings itself, so PING/PONG frames never
    surface through recv(). Keepalive is disabled at connect time so the
    streaming client's own heartbeat is the only one.
    """

    def __init__(self, ws: Any):
        self._ws = ws

    async def recv(self) -> Frame:
        try:
            message = await self._ws.recv()
        except ConnectionClosedOK:
            return Frame(FrameType.CLOSE)
        except ConnectionClosed as e:
            raise NetworkError(f"WebSocket closed abnormally: {e}") from e
        if isinstance(message, bytes):
            return Frame(FrameType.BINARY, message)
        return Frame(FrameType.TEXT, message)

    async def send_text(self, text: str) -> None:
        try:
            await self._ws.send(text)
        except ConnectionClosed as e:
            raise NetworkError(f"WebSocket send failed: {e}") from e

    async def ping(self, data: bytes = b"") -> None:
        try:
            await self._ws.ping(data)
        except ConnectionClosed as e:
            raise NetworkError(f"WebSocket ping failed: {e}") from e

    async def pong(self, data: bytes = b"") -> None:
        try:
            await self._ws.pong(data)
        except ConnectionClosed as e:
            raise NetworkError(f"WebSocket pong failed: {e}") from e

    async def close(self) -> None:
        await self._ws.close()


def websockets_connector(open_timeout: float = 30.0) -> Connector:
    """Build a Connector that opens sockets with ``websockets.connect``."""

    async def connect(url: str, headers: Dict[str, str]) -> WebSocketConnection:
        try:
            ws = await websockets.connect(
                url,
                additional_headers=headers,
                open_timeout=open_timeout,
                ping_interval=None,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            raise NetworkError(f"WebSocket connect failed: {e}") from e
        logger.info(f"WebSocket connected to {url}")
        return WebsocketsConnection(ws)

    return connect


# ============================================================================
# Event stream
# ============================================================================

class EventStream:
    """
    Buffered channel of streaming events.

    Iterate with ``async for event in stream``; iteration ends once the
    supervisor exits and every buffered event has been read.
    """

    _CLOSED = object()

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def put(self, event: Event) -> bool:
        """Enqueue an event. Returns False once the stream is closed."""
        if self._closed:
            return False
        self._queue.put_nowait(event)
        return True

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(self._CLOSED)

    async def get(self) -> Optional[Event]:
        """Next event, or None once the stream is closed and drained."""
        item = await self._queue.get()
        if item is self._CLOSED:
            # Keep the marker so later readers also see the end
            self._queue.put_nowait(self._CLOSED)
            return None
        return item

    def __aiter__(self) -> "EventStream":
        return self

    async def __anext__(self) -> Event:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def __len__(self) -> int:
        return self._queue.qsize()


# ============================================================================
# Streaming client
# ============================================================================

class StreamingClient:
    """
    Supervised WebSocket client.

    connect() returns an EventStream immediately and starts a supervisor
    task. The supervisor connects, replays subscriptions, reads frames,
    and reconnects after ``reconnect_delay`` until ``max_reconnect_attempts``
    consecutive attempts have failed, at which point it emits
    ``Connection(FAILED)`` and closes the stream. A successful connect
    resets the attempt counter.

    Example:
        >>> stream = await client.connect()
        >>> async for event in stream:
        ...     if event.event_type is EventType.CONNECTION and event.payload.status is ConnectionState.CONNECTED:
        ...         await client.subscribe(SubscriptionRequest.quotes(["AAPL"]))
    """

    def __init__(
        self,
        ws_url: str,
        auth: AuthManager,
        heartbeat_interval: float = 30.0,
        max_reconnect_attempts: int = 5,
        reconnect_delay: float = 5.0,
        connect_timeout: float = 30.0,
        connector: Optional[Connector] = None,
    ):
        """
        Args:
            ws_url: WebSocket endpoint.
            auth: AuthManager supplying the bearer token for each connect.
            heartbeat_interval: Idle seconds before a heartbeat is sent.
            max_reconnect_attempts: Consecutive failed attempts before FAILED.
            reconnect_delay: Seconds between attempts.
            connect_timeout: Handshake timeout for the default connector.
            connector: Override for opening sockets (tests inject fakes).
        """
        self._url = ws_url
        self._auth = auth
        self._heartbeat_interval = heartbeat_interval
        self._max_reconnect_attempts = max_reconnect_attempts
        self._reconnect_delay = reconnect_delay
        self._connector = connector or websockets_connector(connect_timeout)

        self._lock = threading.Lock()
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_attempts = 0
        self._stop_requested = False
        self._stop_event: Optional[asyncio.Event] = None
        self._conn: Optional[WebSocketConnection] = None
        self._connection_id: Optional[str] = None
        self._last_activity = 0.0
        self._last_status: Optional[ConnectionState] = None

        self._events: Optional[EventStream] = None
        self._supervisor: Optional[asyncio.Task] = None

        # Subscription tracking (for reconnect replay)
        self._subscriptions: Dict[Any, SubscriptionRequest] = {}

        self._stats = {
            "connects": 0,
            "events": 0,
            "heartbeats": 0,
            "parse_errors": 0,
        }

    # ========================================================================
    # Properties
    # ========================================================================

    @property
    def state(self) -> ConnectionState:
        with self._lock:
            return self._state

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def connection_id(self) -> Optional[str]:
        return self._connection_id

    @property
    def reconnect_attempts(self) -> int:
        with self._lock:
            return self._reconnect_attempts

    @property
    def running(self) -> bool:
        return self._supervisor is not None and not self._supervisor.done()

    def get_subscriptions(self) -> List[SubscriptionRequest]:
        return list(self._subscriptions.values())

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def connect(self) -> EventStream:
        """
        Start the supervisor and return its event stream.

        Raises:
            InvalidRequest: A supervisor is already running.
        """
        if self.running:
            raise InvalidRequest("Streaming client is already running")

        with self._lock:
            self._stop_requested = False
            self._reconnect_attempts = 0
            self._state = ConnectionState.DISCONNECTED
        self._last_status = None
        self._stop_event = asyncio.Event()
        self._events = EventStream()
        self._supervisor = asyncio.create_task(self._supervise(self._events, self._stop_event))
        return self._events

    async def disconnect(self) -> None:
        """
        Stop the supervisor. No further reconnect attempts are made and the
        event stream closes once the supervisor exits.
        """
        with self._lock:
            self._stop_requested = True
            self._reconnect_attempts = self._max_reconnect_attempts + 1
            self._state = ConnectionState.DISCONNECTED
        if self._stop_event is not None:
            self._stop_event.set()
        logger.info("WebSocket disconnect requested")

    async def wait_closed(self) -> None:
        """Wait for the supervisor to exit."""
        if self._supervisor is not None:
            await self._supervisor

    async def close(self) -> None:
        await self.disconnect()
        await self.wait_closed()

    # ========================================================================
    # Subscriptions
    # ========================================================================

    async def subscribe(self, request: SubscriptionRequest) -> None:
        """
        Subscribe on the live connection and remember it for replay.

        Raises:
            InvalidRequest: Not connected.
            NetworkError: The control message could not be sent.
        """
        conn = self._require_connection()
        await conn.send_text(request.control_message(SUBSCRIBE))
        self._subscriptions[request.key] = request
        logger.debug(f"Subscribed {request.subscription_type.value}: {request.to_dict()}")

    async def unsubscribe(self, request: SubscriptionRequest) -> None:
        """
        Unsubscribe on the live connection and stop replaying it.

        Raises:
            InvalidRequest: Not connected.
            NetworkError: The control message could not be sent.
        """
        conn = self._require_connection()
        await conn.send_text(request.control_message(UNSUBSCRIBE))
        self._subscriptions.pop(request.key, None)
        logger.debug(f"Unsubscribed {request.subscription_type.value}: {request.to_dict()}")

    def _require_connection(self) -> WebSocketConnection:
        with self._lock:
            if self._state is not ConnectionState.CONNECTED or self._conn is None:
                raise InvalidRequest(f"Cannot change subscriptions while {self._state.value}")
            return self._conn

    async def _replay_subscriptions(self, conn: WebSocketConnection) -> None:
        """Re-subscribe everything tracked after a (re)connect."""
        failed = []
        for key, request in list(self._subscriptions.items()):
            try:
                await conn.send_text(request.control_message(SUBSCRIBE))
                logger.debug(f"Replayed subscription: {request.to_dict()}")
            except WebullError as e:
                logger.warning(f"Failed to replay subscription {request.to_dict()}: {e}")
                failed.append(key)

        # Drop failed subscriptions so callers know they are not receiving data
        for key in failed:
            request = self._subscriptions.pop(key, None)
            if request is not None:
                logger.warning(f"Removed failed subscription: {request.to_dict()}")

    # ========================================================================
    # Supervisor
    # ========================================================================

    def _emit(self, events: EventStream, event: Event) -> None:
        if not events.put(event):
            logger.debug(f"Dropped {event.event_type.value} event: stream closed")
            return
        self._stats["events"] += 1

    def _emit_connection(
        self,
        events: EventStream,
        status: ConnectionState,
        message: Optional[str] = None,
    ) -> None:
        self._last_status = status
        self._emit(events, Event.connection(status, self._connection_id, message))

    async def _sleep_or_stop(self, stop: asyncio.Event, delay: float) -> None:
        if stop.is_set():
            return
        try:
            await asyncio.wait_for(stop.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _supervise(self, events: EventStream, stop: asyncio.Event) -> None:
        try:
            while True:
                with self._lock:
                    if self._stop_requested:
                        break
                    exhausted = self._reconnect_attempts >= self._max_reconnect_attempts
                    if exhausted:
                        self._state = ConnectionState.FAILED
                    else:
                        self._reconnect_attempts += 1
                    attempt = self._reconnect_attempts

                if exhausted:
                    logger.error(f"WebSocket giving up after {attempt} attempts")
                    self._emit_connection(
                        events, ConnectionState.FAILED,
                        f"Maximum reconnect attempts ({self._max_reconnect_attempts}) exceeded")
                    break

                try:
                    token = self._auth.get_token()
                except WebullError as e:
                    logger.warning(f"WebSocket auth unavailable (attempt {attempt}): {e}")
                    self._emit(events, Event.error(AUTH_ERROR, str(e)))
                    await self._sleep_or_stop(stop, self._reconnect_delay)
                    continue

                await self._attempt(events, stop, token, attempt)

                if self._stop_requested:
                    break

                with self._lock:
                    self._state = ConnectionState.RECONNECTING
                logger.info(f"Reconnecting in {self._reconnect_delay:.1f}s (attempt {attempt})")
                self._emit_connection(events, ConnectionState.RECONNECTING)
                await self._sleep_or_stop(stop, self._reconnect_delay)

            if self._stop_requested and self._last_status is not ConnectionState.DISCONNECTED:
                self._emit_connection(events, ConnectionState.DISCONNECTED)
        finally:
            with self._lock:
                if self._state is not ConnectionState.FAILED:
                    self._state = ConnectionState.DISCONNECTED
                self._conn = None
            events.close()
            logger.info("WebSocket supervisor stopped")

    async def _attempt(
        self,
        events: EventStream,
        stop: asyncio.Event,
        token: AccessToken,
        attempt: int,
    ) -> None:
        """One handshake and, if it succeeds, the connection's lifetime."""
        headers = {"Authorization": f"{token.token_type} {token.token}"}
        try:
            conn = await self._connector(self._url, headers)
        except WebullError as e:
            logger.warning(f"WebSocket connect failed (attempt {attempt}): {e}")
            self._emit(events, Event.error(WS_CONNECT_ERROR, str(e)))
            return

        self._connection_id = str(uuid.uuid4())
        with self._lock:
            self._reconnect_attempts = 0
            self._conn = conn
            if not self._stop_requested:
                self._state = ConnectionState.CONNECTED
        self._stats["connects"] += 1
        self._emit_connection(events, ConnectionState.CONNECTED)

        try:
            await self._replay_subscriptions(conn)
            await self._read_loop(events, stop, conn)
        finally:
            with self._lock:
                self._conn = None
                if self._state is ConnectionState.CONNECTED:
                    self._state = ConnectionState.DISCONNECTED
            try:
                await conn.close()
            except Exception as e:
                logger.debug(f"WebSocket close error: {e}")
            self._emit_connection(events, ConnectionState.DISCONNECTED)

    async def _read_loop(self, events: EventStream, stop: asyncio.Event, conn: WebSocketConnection) -> None:
        """Read frames until close, error, or stop."""
        self._last_activity = time.monotonic()
        heartbeat = asyncio.create_task(self._heartbeat_loop(events, conn))
        stop_wait = asyncio.create_task(stop.wait())
        try:
            while True:
                recv = asyncio.create_task(conn.recv())
                done, _ = await asyncio.wait(
                    {recv, stop_wait, heartbeat}, return_when=asyncio.FIRST_COMPLETED)
                # The heartbeat task only finishes when a heartbeat could not be sent
                if recv not in done or heartbeat in done:
                    recv.cancel()
                    await asyncio.gather(recv, return_exceptions=True)
                    return
                frame = recv.result()
                if not await self._handle_frame(events, conn, frame):
                    return
        except Exception as e:
            logger.warning(f"WS read error: {e}")
            self._emit(events, Event.error(WS_ERROR, str(e)))
        finally:
            heartbeat.cancel()
            stop_wait.cancel()
            await asyncio.gather(heartbeat, stop_wait, return_exceptions=True)

    async def _handle_frame(self, events: EventStream, conn: WebSocketConnection, frame: Frame) -> bool:
        """Dispatch one frame. Returns False when the connection should end."""
        if frame.frame_type is FrameType.CLOSE:
            logger.info("WebSocket closed by server")
            return False

        self._last_activity = time.monotonic()

        if frame.frame_type is FrameType.PING:
            data = frame.data if isinstance(frame.data, bytes) else frame.data.encode()
            try:
                await conn.pong(data)
            except WebullError as e:
                logger.warning(f"WebSocket pong failed: {e}")
                self._emit(events, Event.error(PONG_ERROR, str(e)))
            return True

        if frame.frame_type is FrameType.PONG:
            return True

        try:
            event = decode_event(frame.data)
        except WebullError as e:
            self._stats["parse_errors"] += 1
            logger.debug(f"WS parse error: {e}")
            self._emit(events, Event.error(PARSE_ERROR, str(e)))
            return True
        self._emit(events, event)
        return True

    async def _heartbeat_loop(self, events: EventStream, conn: WebSocketConnection) -> None:
        """
        Send a heartbeat whenever the socket has been idle for a full interval.

        Returns only when a heartbeat cannot be sent, which ends the connection.
        """
        while True:
            await asyncio.sleep(self._heartbeat_interval)
            if time.monotonic() - self._last_activity < self._heartbeat_interval:
                continue
            heartbeat_id = str(uuid.uuid4())
            try:
                await conn.send_text(json.dumps({"type": "HEARTBEAT", "id": heartbeat_id}))
                await conn.ping()
            except WebullError as e:
                logger.warning(f"WebSocket heartbeat failed: {e}")
                self._emit(events, Event.error(WS_ERROR, str(e)))
                return
            self._last_activity = time.monotonic()
            self._stats["heartbeats"] += 1
            self._emit(events, Event.heartbeat(heartbeat_id))

    # ========================================================================
    # Stats
    # ========================================================================

    def get_stats(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "reconnect_attempts": self.reconnect_attempts,
            "subscriptions": len(self._subscriptions),
            **self._stats,
        }

    def __repr__(self) -> str:
        return f"StreamingClient(url={self._url!r}, state={self.state.value})"
