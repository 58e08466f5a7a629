"""Tests for streaming event decoding and subscription requests."""
import json
import pytest
from datetime import datetime, timezone

from webull_core.errors import SerializationError
from webull_core.models import Order, OrderStatus, Quote
from webull_core.ws_events import (
    ConnectionEvent,
    ConnectionState,
    ErrorEvent,
    Event,
    EventType,
    HeartbeatEvent,
    SubscriptionEvent,
    SubscriptionState,
    decode_event,
)
from webull_core.ws_subscription import (
    SUBSCRIBE,
    UNSUBSCRIBE,
    SubscriptionRequest,
    SubscriptionType,
)


def _frame(event_type, data, timestamp="2024-01-02T15:30:00Z"):
    return json.dumps({"type": event_type, "timestamp": timestamp, "data": data})


class TestDecodeEvent:
    """Tests for decode_event()."""

    def test_quote(self):
        event = decode_event(_frame("QUOTE", {
            "symbol": "AAPL", "last_price": "190.5", "timestamp": "2024-01-02T15:30:00Z",
        }))
        assert event.event_type is EventType.QUOTE
        assert isinstance(event.payload, Quote)
        assert event.payload.symbol == "AAPL"
        assert event.payload.last_price == 190.5
        assert event.timestamp == datetime(2024, 1, 2, 15, 30, tzinfo=timezone.utc)

    def test_order(self):
        event = decode_event(_frame("ORDER", {
            "id": 42,
            "symbol": "MSFT",
            "quantity": 5,
            "status": "FILLED",
            "side": "BUY",
            "order_type": "MARKET",
            "time_in_force": "DAY",
            "created_at": "2024-01-02T15:00:00Z",
        }))
        assert isinstance(event.payload, Order)
        assert event.payload.id == "42"
        assert event.payload.status is OrderStatus.FILLED

    def test_connection(self):
        event = decode_event(_frame("CONNECTION", {"status": "connected", "connection_id": "c1"}))
        assert event.payload == ConnectionEvent(ConnectionState.CONNECTED, "c1")

    def test_subscription(self):
        event = decode_event(_frame("SUBSCRIPTION", {
            "status": "SUBSCRIBED", "subscription_type": "QUOTE", "symbols": ["AAPL"],
        }))
        assert isinstance(event.payload, SubscriptionEvent)
        assert event.payload.status is SubscriptionState.SUBSCRIBED
        assert event.payload.symbols == ["AAPL"]

    def test_error(self):
        event = decode_event(_frame("ERROR", {"code": "E1", "message": "bad"}))
        assert event.is_error
        assert event.payload == ErrorEvent("E1", "bad")

    def test_heartbeat(self):
        event = decode_event(_frame("HEARTBEAT", {"id": "hb-1"}))
        assert event.payload == HeartbeatEvent("hb-1")

    def test_account_keeps_raw_dict(self):
        event = decode_event(_frame("ACCOUNT", {"account_id": "A1", "buying_power": 100}))
        assert event.event_type is EventType.ACCOUNT
        assert event.payload == {"account_id": "A1", "buying_power": 100}

    def test_unknown_type(self):
        event = decode_event(_frame("NEWS", {"headline": "x"}))
        assert event.event_type is EventType.UNKNOWN
        assert event.payload == {"headline": "x"}

    def test_type_case_insensitive(self):
        assert decode_event(_frame("heartbeat", {"id": "h"})).event_type is EventType.HEARTBEAT

    def test_bytes_input(self):
        event = decode_event(_frame("HEARTBEAT", {"id": "h"}).encode())
        assert event.event_type is EventType.HEARTBEAT

    def test_missing_data_decodes_empty(self):
        raw = json.dumps({"type": "TRADE", "timestamp": "2024-01-02T15:30:00Z"})
        assert decode_event(raw).payload == {}

    @pytest.mark.parametrize("raw", [
        "not json",
        "[1, 2]",
        json.dumps({"type": "QUOTE", "data": {}}),
        json.dumps({"type": "TRADE", "timestamp": "2024-01-02T15:30:00Z", "data": [1]}),
        json.dumps({"timestamp": "2024-01-02T15:30:00Z", "data": {}}),
        _frame("QUOTE", {"symbol": "AAPL"}),
        _frame("HEARTBEAT", {"id": "h"}, timestamp="yesterday"),
    ])
    def test_invalid_frames(self, raw):
        with pytest.raises(SerializationError):
            decode_event(raw)


class TestEventFactories:

    def test_connection(self):
        event = Event.connection(ConnectionState.FAILED, message="gave up")
        assert event.event_type is EventType.CONNECTION
        assert event.payload.status is ConnectionState.FAILED
        assert event.payload.message == "gave up"
        assert event.timestamp.tzinfo is not None

    def test_error(self):
        event = Event.error("WS_ERROR", "boom")
        assert event.is_error
        assert event.payload.code == "WS_ERROR"

    def test_heartbeat_generates_id(self):
        a, b = Event.heartbeat(), Event.heartbeat()
        assert a.payload.id and b.payload.id
        assert a.payload.id != b.payload.id
        assert Event.heartbeat("fixed").payload.id == "fixed"


class TestSubscriptionRequest:

    def test_quotes_control_message(self):
        msg = json.loads(SubscriptionRequest.quotes(["AAPL", "MSFT"]).control_message(SUBSCRIBE))
        assert msg == {"action": "SUBSCRIBE", "request": {"type": "QUOTE", "symbols": ["AAPL", "MSFT"]}}

    def test_account_control_message(self):
        msg = json.loads(SubscriptionRequest.account("A1").control_message(UNSUBSCRIBE))
        assert msg == {"action": "UNSUBSCRIBE", "request": {"type": "ACCOUNT", "account_id": "A1"}}

    def test_key_ignores_symbol_order(self):
        a = SubscriptionRequest.quotes(["MSFT", "AAPL"])
        b = SubscriptionRequest.quotes(["AAPL", "MSFT"])
        assert a.key == b.key
        assert a.key != SubscriptionRequest.trades(["AAPL", "MSFT"]).key

    def test_orders_factory(self):
        req = SubscriptionRequest.orders("A1")
        assert req.subscription_type is SubscriptionType.ORDER
        assert req.to_dict() == {"type": "ORDER", "account_id": "A1"}

    def test_unknown_action(self):
        with pytest.raises(ValueError):
            SubscriptionRequest.quotes(["AAPL"]).control_message("PAUSE")
