"""Order models and order-entry requests."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import InvalidRequest
from .common import drop_none, format_datetime, opt_float, parse_datetime, parse_enum


class OrderStatus(str, Enum):
    NEW = "NEW"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELED = "CANCELED"
    REJECTED = "REJECTED"
    PENDING_CANCEL = "PENDING_CANCEL"
    PENDING_NEW = "PENDING_NEW"
    PENDING_REPLACE = "PENDING_REPLACE"
    REPLACED = "REPLACED"
    SUSPENDED = "SUSPENDED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATUSES


_TERMINAL_STATUSES = frozenset({
    OrderStatus.FILLED, OrderStatus.CANCELED, OrderStatus.REJECTED,
    OrderStatus.REPLACED, OrderStatus.EXPIRED,
})


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    SELL_SHORT = "SELL_SHORT"
    BUY_TO_COVER = "BUY_TO_COVER"


class OrderType(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"
    STOP = "STOP_LOSS"
    STOP_LIMIT = "STOP_LOSS_LIMIT"
    TRAILING_STOP = "TRAILING_STOP"
    TRAILING_STOP_LIMIT = "TRAILING_STOP_LIMIT"
    ENHANCED_LIMIT = "ENHANCED_LIMIT"
    AT_AUCTION = "AT_AUCTION"
    AT_AUCTION_LIMIT = "AT_AUCTION_LIMIT"


class TimeInForce(str, Enum):
    DAY = "DAY"
    GTC = "GTC"
    GTD = "GTD"
    IOC = "IOC"
    FOK = "FOK"


class TrailingStopType(str, Enum):
    AMOUNT = "AMOUNT"
    PERCENT = "PERCENT"


_NEEDS_PRICE = frozenset({
    OrderType.LIMIT, OrderType.STOP_LIMIT, OrderType.TRAILING_STOP_LIMIT,
    OrderType.ENHANCED_LIMIT, OrderType.AT_AUCTION_LIMIT,
})
_NEEDS_STOP = frozenset({OrderType.STOP, OrderType.STOP_LIMIT})
_TRAILING = frozenset({OrderType.TRAILING_STOP, OrderType.TRAILING_STOP_LIMIT})


@dataclass
class Order:
    """An order as reported by the broker."""

    id: str
    symbol: str
    quantity: float
    filled_quantity: float
    status: OrderStatus
    side: OrderSide
    order_type: OrderType
    time_in_force: TimeInForce
    created_at: datetime
    updated_at: datetime
    price: Optional[float] = None
    stop_price: Optional[float] = None
    extended_hours: bool = False
    commission: float = 0.0
    rejected_reason: Optional[str] = None
    average_fill_price: Optional[float] = None

    @property
    def remaining_quantity(self) -> float:
        return max(0.0, self.quantity - self.filled_quantity)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        return cls(
            id=str(data["id"]),
            symbol=data["symbol"],
            quantity=float(data["quantity"]),
            filled_quantity=float(data.get("filled_quantity") or 0.0),
            status=parse_enum(OrderStatus, data["status"]),
            side=parse_enum(OrderSide, data["side"]),
            order_type=parse_enum(OrderType, data["order_type"]),
            time_in_force=parse_enum(TimeInForce, data["time_in_force"]),
            created_at=parse_datetime(data["created_at"]),
            updated_at=parse_datetime(data.get("updated_at") or data["created_at"]),
            price=opt_float(data.get("price")),
            stop_price=opt_float(data.get("stop_price")),
            extended_hours=bool(data.get("extended_hours", False)),
            commission=float(data.get("commission") or 0.0),
            rejected_reason=data.get("rejected_reason"),
            average_fill_price=opt_float(data.get("average_fill_price")),
        )


@dataclass
class OrderRequest:
    """
    New-order or modify-order request.

    Example:
        >>> req = OrderRequest.limit("AAPL", 10, OrderSide.BUY, price=190.5)
        >>> req.validate()
    """

    symbol: str
    quantity: float
    side: OrderSide = OrderSide.BUY
    order_type: OrderType = OrderType.MARKET
    time_in_force: TimeInForce = TimeInForce.DAY
    price: Optional[float] = None
    stop_price: Optional[float] = None
    extended_hours: bool = False
    trailing_type: Optional[TrailingStopType] = None
    trailing_stop_step: Optional[float] = None
    client_order_id: Optional[str] = None
    instrument_id: Optional[str] = None

    @classmethod
    def market(cls, symbol: str, quantity: float, side: OrderSide = OrderSide.BUY, **kwargs: Any) -> "OrderRequest":
        return cls(symbol, quantity, side, OrderType.MARKET, **kwargs)

    @classmethod
    def limit(cls, symbol: str, quantity: float, side: OrderSide, price: float, **kwargs: Any) -> "OrderRequest":
        return cls(symbol, quantity, side, OrderType.LIMIT, price=price, **kwargs)

    @classmethod
    def stop(cls, symbol: str, quantity: float, side: OrderSide, stop_price: float, **kwargs: Any) -> "OrderRequest":
        return cls(symbol, quantity, side, OrderType.STOP, stop_price=stop_price, **kwargs)

    @classmethod
    def stop_limit(
        cls,
        symbol: str,
        quantity: float,
        side: OrderSide,
        stop_price: float,
        price: float,
        **kwargs: Any,
    ) -> "OrderRequest":
        return cls(symbol, quantity, side, OrderType.STOP_LIMIT, price=price, stop_price=stop_price, **kwargs)

    @classmethod
    def trailing_stop(
        cls,
        symbol: str,
        quantity: float,
        side: OrderSide,
        trailing_type: TrailingStopType,
        trailing_stop_step: float,
        **kwargs: Any,
    ) -> "OrderRequest":
        return cls(
            symbol, quantity, side, OrderType.TRAILING_STOP,
            trailing_type=trailing_type, trailing_stop_step=trailing_stop_step, **kwargs,
        )

    def validate(self) -> None:
        """
        Check the fields required by the order type.

        Raises:
            InvalidRequest: On the first missing or invalid field.
        """
        if not self.symbol:
            raise InvalidRequest("Order symbol is required")
        if self.quantity <= 0:
            raise InvalidRequest(f"Order quantity must be positive, got {self.quantity}")
        if self.order_type in _NEEDS_PRICE and self.price is None:
            raise InvalidRequest(f"{self.order_type.value} order requires a limit price")
        if self.order_type in _NEEDS_STOP and self.stop_price is None:
            raise InvalidRequest(f"{self.order_type.value} order requires a stop price")
        if self.order_type in _TRAILING and (self.trailing_type is None or self.trailing_stop_step is None):
            raise InvalidRequest(f"{self.order_type.value} order requires trailing_type and trailing_stop_step")
        for name in ("price", "stop_price", "trailing_stop_step"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise InvalidRequest(f"Order {name} must be positive, got {value}")

    def to_dict(self) -> Dict[str, Any]:
        return drop_none({
            "symbol": self.symbol,
            "quantity": self.quantity,
            "side": self.side.value,
            "order_type": self.order_type.value,
            "time_in_force": self.time_in_force.value,
            "price": self.price,
            "stop_price": self.stop_price,
            "extended_hours": self.extended_hours,
            "trailing_type": self.trailing_type.value if self.trailing_type else None,
            "trailing_stop_step": self.trailing_stop_step,
            "client_order_id": self.client_order_id,
            "instrument_id": self.instrument_id,
        })


@dataclass
class OrderResponse:
    id: str
    status: OrderStatus
    symbol: str
    quantity: float
    side: OrderSide
    order_type: OrderType
    time_in_force: TimeInForce
    created_at: datetime
    price: Optional[float] = None
    stop_price: Optional[float] = None
    extended_hours: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderResponse":
        return cls(
            id=str(data["id"]),
            status=parse_enum(OrderStatus, data["status"]),
            symbol=data["symbol"],
            quantity=float(data["quantity"]),
            side=parse_enum(OrderSide, data["side"]),
            order_type=parse_enum(OrderType, data["order_type"]),
            time_in_force=parse_enum(TimeInForce, data["time_in_force"]),
            created_at=parse_datetime(data["created_at"]),
            price=opt_float(data.get("price")),
            stop_price=opt_float(data.get("stop_price")),
            extended_hours=bool(data.get("extended_hours", False)),
        )


@dataclass
class OrderQueryParams:
    status: Optional[OrderStatus] = None
    symbol: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return drop_none({
            "status": self.status.value if self.status else None,
            "symbol": self.symbol,
            "start_date": format_datetime(self.start_date),
            "end_date": format_datetime(self.end_date),
            "limit": self.limit,
        })



@dataclass
class OrderPageParams:
    """Page request for open or today's orders. Continue from the last client order id seen."""

    account_id: str
    page_size: int = 100
    last_client_order_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return drop_none({
            "account_id": self.account_id,
            "page_size": self.page_size,
            "last_client_order_id": self.last_client_order_id,
        })
