"""Tests for request/response models."""
import pytest
from datetime import datetime, timezone

from webull_core.errors import InvalidRequest
from webull_core.models import (
    Account,
    AccountStatus,
    AccountType,
    BalanceParams,
    Bar,
    BarQueryParams,
    CreateWatchlistRequest,
    InstrumentParams,
    ModifyWatchlistRequest,
    NewsQueryParams,
    Order,
    OrderQueryParams,
    OrderRequest,
    OrderSide,
    OrderStatus,
    OrderType,
    Position,
    PositionParams,
    Quote,
    SnapshotParams,
    TimeFrame,
    TrailingStopType,
    Watchlist,
)
from webull_core.models.common import format_datetime, parse_datetime

TS = "2024-01-02T15:30:00Z"


def _order_dict(**overrides):
    data = {
        "id": 42,
        "symbol": "AAPL",
        "quantity": "10",
        "filled_quantity": "4",
        "status": "partially_filled",
        "side": "BUY",
        "order_type": "LIMIT",
        "time_in_force": "DAY",
        "created_at": TS,
        "price": "190.5",
    }
    data.update(overrides)
    return data


class TestCommonParsing:

    def test_z_suffix(self):
        dt = parse_datetime("2024-01-02T15:30:00Z")
        assert dt == datetime(2024, 1, 2, 15, 30, tzinfo=timezone.utc)

    def test_naive_assumed_utc(self):
        assert parse_datetime("2024-01-02T15:30:00").tzinfo == timezone.utc

    def test_epoch_millis(self):
        assert parse_datetime(1704209400000) == datetime(2024, 1, 2, 15, 30, tzinfo=timezone.utc)

    def test_invalid(self):
        with pytest.raises(ValueError):
            parse_datetime("yesterday")

    def test_format_uses_z(self):
        assert format_datetime(datetime(2024, 1, 2, tzinfo=timezone.utc)) == "2024-01-02T00:00:00Z"
        assert format_datetime(None) is None


class TestAccountModels:

    def test_account_from_dict(self):
        acct = Account.from_dict({
            "id": 1, "account_number": "5MX", "account_type": "margin",
            "status": "ACTIVE", "created_at": TS, "currency": "USD",
        })
        assert acct.id == "1"
        assert acct.account_type is AccountType.MARGIN
        assert acct.status is AccountStatus.ACTIVE
        assert acct.paper_trading is False

    def test_account_missing_field(self):
        with pytest.raises(KeyError):
            Account.from_dict({"id": 1})

    def test_position_numbers_coerced(self):
        pos = Position.from_dict({
            "symbol": "AAPL", "instrument_id": 913256135, "quantity": "10",
            "cost_basis": "1800", "market_value": "1905", "unrealized_profit_loss": "105",
            "unrealized_profit_loss_percentage": "5.83", "current_price": "190.5",
        })
        assert pos.quantity == 10.0
        assert pos.instrument_id == "913256135"
        assert pos.opened_at is None

    def test_params(self):
        assert BalanceParams("A1").to_dict() == {"account_id": "A1", "total_asset_currency": "USD"}
        assert PositionParams("A1").to_dict() == {"account_id": "A1", "page_size": 100}
        assert PositionParams("A1", 50, "X").to_dict()["last_instrument_id"] == "X"


class TestOrderModels:

    def test_order_from_dict(self):
        order = Order.from_dict(_order_dict())
        assert order.id == "42"
        assert order.status is OrderStatus.PARTIALLY_FILLED
        assert order.order_type is OrderType.LIMIT
        assert order.remaining_quantity == 6.0
        assert order.updated_at == order.created_at

    def test_stop_type_wire_value(self):
        order = Order.from_dict(_order_dict(order_type="STOP_LOSS", price=None, stop_price="180"))
        assert order.order_type is OrderType.STOP

    def test_terminal_statuses(self):
        assert OrderStatus.FILLED.is_terminal
        assert OrderStatus.CANCELED.is_terminal
        assert not OrderStatus.NEW.is_terminal
        assert not OrderStatus.PENDING_CANCEL.is_terminal

    def test_limit_request_to_dict_drops_none(self):
        req = OrderRequest.limit("AAPL", 10, OrderSide.BUY, price=190.5)
        body = req.to_dict()
        assert body["order_type"] == "LIMIT"
        assert body["price"] == 190.5
        assert "stop_price" not in body
        assert "client_order_id" not in body

    def test_market_request_valid(self):
        OrderRequest.market("AAPL", 1).validate()

    @pytest.mark.parametrize("req", [
        OrderRequest("", 1),
        OrderRequest("AAPL", 0),
        OrderRequest("AAPL", 1, order_type=OrderType.LIMIT),
        OrderRequest("AAPL", 1, order_type=OrderType.STOP),
        OrderRequest("AAPL", 1, order_type=OrderType.STOP_LIMIT, price=10),
        OrderRequest("AAPL", 1, order_type=OrderType.TRAILING_STOP),
        OrderRequest.limit("AAPL", 1, OrderSide.SELL, price=-1),
    ])
    def test_invalid_requests(self, req):
        with pytest.raises(InvalidRequest):
            req.validate()

    def test_stop_limit_and_trailing(self):
        OrderRequest.stop_limit("AAPL", 1, OrderSide.SELL, stop_price=180, price=179).validate()
        trailing = OrderRequest.trailing_stop("AAPL", 1, OrderSide.SELL, TrailingStopType.PERCENT, 2.0)
        trailing.validate()
        assert trailing.to_dict()["trailing_type"] == "PERCENT"

    def test_query_params(self):
        params = OrderQueryParams(status=OrderStatus.FILLED, start_date=datetime(2024, 1, 1, tzinfo=timezone.utc))
        assert params.to_dict() == {"status": "FILLED", "start_date": "2024-01-01T00:00:00Z"}
        assert OrderQueryParams().to_dict() == {}


class TestMarketModels:

    def test_quote_spread(self):
        quote = Quote.from_dict({
            "symbol": "AAPL", "last_price": 190, "timestamp": TS,
            "bid_price": "189.9", "ask_price": "190.1",
        })
        assert quote.spread == pytest.approx(0.2)
        assert quote.market_cap is None

    def test_quote_spread_without_book(self):
        quote = Quote.from_dict({"symbol": "AAPL", "last_price": 190, "timestamp": TS})
        assert quote.spread == 0.0

    def test_bar_from_dict(self):
        bar = Bar.from_dict({
            "symbol": "AAPL", "open": 1, "high": 2, "low": 0.5, "close": 1.5,
            "volume": "100", "timestamp": TS,
        })
        assert bar.volume == 100

    def test_bar_query_params(self):
        assert BarQueryParams("AAPL", TimeFrame.MINUTE_5, 50).to_dict() == {
            "symbol": "AAPL", "category": "US_STOCK", "timespan": "m5", "count": "50",
        }

    def test_symbol_list_params(self):
        assert SnapshotParams(["AAPL", "MSFT"]).to_dict()["symbols"] == "AAPL,MSFT"
        assert InstrumentParams.for_symbols(("TSLA",)).to_dict()["symbols"] == "TSLA"

    def test_news_params(self):
        assert NewsQueryParams(symbol="AAPL", limit=5).to_dict() == {"symbol": "AAPL", "limit": 5}


class TestWatchlistModels:

    def test_watchlist_from_dict(self):
        wl = Watchlist.from_dict({"id": 7, "name": "Tech"})
        assert wl.id == "7"
        assert wl.symbols == []

    def test_requests(self):
        assert CreateWatchlistRequest("Tech", ["AAPL"]).to_dict() == {"name": "Tech", "symbols": ["AAPL"]}
        assert ModifyWatchlistRequest("7", add_symbols=["MSFT"]).to_dict() == {"id": "7", "add_symbols": ["MSFT"]}
