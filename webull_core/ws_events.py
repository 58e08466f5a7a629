"""
Streaming Events

Provides:
- EventType / ConnectionState / SubscriptionState enums
- Payload dataclasses for connection, subscription, error and heartbeat events
- Event envelope and decode_event() for inbound text frames

Wire shape: ``{"type": <EventType>, "timestamp": <ISO-8601>, "data": {...}}``.
"""

from __future__ import annotations

import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .auth import utcnow
from .errors import SerializationError
from .models.common import parse_datetime
from .models.market import Quote
from .models.order import Order


class EventType(str, Enum):
    QUOTE = "QUOTE"
    ORDER = "ORDER"
    ACCOUNT = "ACCOUNT"
    TRADE = "TRADE"
    CONNECTION = "CONNECTION"
    SUBSCRIPTION = "SUBSCRIPTION"
    ERROR = "ERROR"
    HEARTBEAT = "HEARTBEAT"
    UNKNOWN = "UNKNOWN"


class ConnectionState(str, Enum):
    CONNECTED = "CONNECTED"
    DISCONNECTED = "DISCONNECTED"
    RECONNECTING = "RECONNECTING"
    FAILED = "FAILED"


class SubscriptionState(str, Enum):
    SUBSCRIBED = "SUBSCRIBED"
    UNSUBSCRIBED = "UNSUBSCRIBED"
    FAILED = "FAILED"


# Error codes carried by locally generated ERROR events
AUTH_ERROR = "AUTH_ERROR"
WS_ERROR = "WS_ERROR"
WS_CONNECT_ERROR = "WS_CONNECT_ERROR"
PARSE_ERROR = "PARSE_ERROR"
PONG_ERROR = "PONG_ERROR"


@dataclass
class ConnectionEvent:
    status: ConnectionState
    connection_id: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionEvent":
        return cls(
            status=ConnectionState(str(data["status"]).upper()),
            connection_id=data.get("connection_id"),
            message=data.get("message"),
        )


@dataclass
class SubscriptionEvent:
    status: SubscriptionState
    subscription_type: Optional[str] = None
    symbols: List[str] = field(default_factory=list)
    account_id: Optional[str] = None
    message: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubscriptionEvent":
        return cls(
            status=SubscriptionState(str(data["status"]).upper()),
            subscription_type=data.get("subscription_type"),
            symbols=list(data.get("symbols") or []),
            account_id=data.get("account_id"),
            message=data.get("message"),
        )


@dataclass
class ErrorEvent:
    code: str
    message: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorEvent":
        return cls(code=str(data["code"]), message=str(data.get("message") or ""))


@dataclass
class HeartbeatEvent:
    id: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HeartbeatEvent":
        return cls(id=str(data["id"]))


Payload = Union[Quote, Order, ConnectionEvent, SubscriptionEvent, ErrorEvent, HeartbeatEvent, Dict[str, Any]]

_DECODERS: Dict[EventType, Callable[[Dict[str, Any]], Any]] = {
    EventType.QUOTE: Quote.from_dict,
    EventType.ORDER: Order.from_dict,
    EventType.CONNECTION: ConnectionEvent.from_dict,
    EventType.SUBSCRIPTION: SubscriptionEvent.from_dict,
    EventType.ERROR: ErrorEvent.from_dict,
    EventType.HEARTBEAT: HeartbeatEvent.from_dict,
}


@dataclass
class Event:
    """
    One streaming event.

    ACCOUNT, TRADE and UNKNOWN events carry their raw ``data`` dict as payload.
    """

    event_type: EventType
    timestamp: datetime
    payload: Payload

    @classmethod
    def connection(
        cls,
        status: ConnectionState,
        connection_id: Optional[str] = None,
        message: Optional[str] = None,
    ) -> "Event":
        return cls(EventType.CONNECTION, utcnow(), ConnectionEvent(status, connection_id, message))

    @classmethod
    def error(cls, code: str, message: str) -> "Event":
        return cls(EventType.ERROR, utcnow(), ErrorEvent(code, message))

    @classmethod
    def heartbeat(cls, heartbeat_id: Optional[str] = None) -> "Event":
        return cls(EventType.HEARTBEAT, utcnow(), HeartbeatEvent(heartbeat_id or str(uuid.uuid4())))

    @property
    def is_error(self) -> bool:
        return self.event_type is EventType.ERROR


def decode_event(raw: Union[str, bytes]) -> Event:
    """
    Decode one inbound text frame.

    Unrecognized ``type`` values decode as UNKNOWN with the raw data dict.

    Raises:
        SerializationError: Not JSON, not an object, or missing/invalid fields.
    """
    try:
        doc = json.loads(raw)
    except ValueError as e:
        raise SerializationError(f"Invalid event JSON: {e}") from e
    if not isinstance(doc, dict):
        raise SerializationError(f"Event must be a JSON object, got {type(doc).__name__}")

    try:
        try:
            event_type = EventType(str(doc["type"]).upper())
        except ValueError:
            event_type = EventType.UNKNOWN
        timestamp = parse_datetime(doc["timestamp"])
        data = doc.get("data") or {}
        if not isinstance(data, dict):
            raise TypeError(f"event data must be an object, got {type(data).__name__}")
        decoder = _DECODERS.get(event_type)
        payload = decoder(data) if decoder else data
    except (KeyError, TypeError, ValueError) as e:
        raise SerializationError(f"Invalid event: {e}") from e

    return Event(event_type, timestamp, payload)
