"""Account, balance, position and trade-history models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from .common import drop_none, opt_datetime, opt_float, parse_datetime, parse_enum


class AccountType(str, Enum):
    CASH = "CASH"
    MARGIN = "MARGIN"
    IRA = "IRA"
    OTHER = "OTHER"


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    PENDING = "PENDING"
    SUSPENDED = "SUSPENDED"


@dataclass
class Account:
    id: str
    account_number: str
    account_type: AccountType
    status: AccountStatus
    created_at: datetime
    currency: str
    paper_trading: bool = False
    region: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Account":
        return cls(
            id=str(data["id"]),
            account_number=str(data["account_number"]),
            account_type=parse_enum(AccountType, data["account_type"]),
            status=parse_enum(AccountStatus, data["status"]),
            created_at=parse_datetime(data["created_at"]),
            currency=data["currency"],
            paper_trading=bool(data.get("paper_trading", False)),
            region=data.get("region"),
            name=data.get("name"),
            email=data.get("email"),
            phone=data.get("phone"),
        )


@dataclass
class AccountProfile:
    id: str
    account_number: str
    account_type: AccountType
    status: AccountStatus
    region: str
    name: str
    currency: str
    created_at: datetime
    paper_trading: bool = False
    email: Optional[str] = None
    phone: Optional[str] = None
    kyc_status: Optional[str] = None
    risk_level: Optional[str] = None
    permissions: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountProfile":
        return cls(
            id=str(data["id"]),
            account_number=str(data["account_number"]),
            account_type=parse_enum(AccountType, data["account_type"]),
            status=parse_enum(AccountStatus, data["status"]),
            region=data["region"],
            name=data["name"],
            currency=data["currency"],
            created_at=parse_datetime(data["created_at"]),
            paper_trading=bool(data.get("paper_trading", False)),
            email=data.get("email"),
            phone=data.get("phone"),
            kyc_status=data.get("kyc_status"),
            risk_level=data.get("risk_level"),
            permissions=list(data.get("permissions") or []),
        )


@dataclass
class AccountBalance:
    """Cash, buying power and valuation for one account."""

    cash: float
    buying_power: float
    market_value: float
    total_value: float
    unrealized_profit_loss: float
    unrealized_profit_loss_percentage: float
    currency: str
    settled_cash: Optional[float] = None
    unsettled_cash: Optional[float] = None
    withdrawable_cash: Optional[float] = None
    tradable_cash: Optional[float] = None
    margin_buying_power: Optional[float] = None
    option_buying_power: Optional[float] = None
    day_trading_buying_power: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccountBalance":
        return cls(
            cash=float(data["cash"]),
            buying_power=float(data["buying_power"]),
            market_value=float(data["market_value"]),
            total_value=float(data["total_value"]),
            unrealized_profit_loss=float(data["unrealized_profit_loss"]),
            unrealized_profit_loss_percentage=float(data["unrealized_profit_loss_percentage"]),
            currency=data["currency"],
            settled_cash=opt_float(data.get("settled_cash")),
            unsettled_cash=opt_float(data.get("unsettled_cash")),
            withdrawable_cash=opt_float(data.get("withdrawable_cash")),
            tradable_cash=opt_float(data.get("tradable_cash")),
            margin_buying_power=opt_float(data.get("margin_buying_power")),
            option_buying_power=opt_float(data.get("option_buying_power")),
            day_trading_buying_power=opt_float(data.get("day_trading_buying_power")),
        )


@dataclass
class Position:
    symbol: str
    instrument_id: str
    quantity: float
    cost_basis: float
    market_value: float
    unrealized_profit_loss: float
    unrealized_profit_loss_percentage: float
    current_price: float
    opened_at: Optional[datetime] = None
    name: Optional[str] = None
    security_type: Optional[str] = None
    exchange: Optional[str] = None
    currency: Optional[str] = None
    side: Optional[str] = None
    tradable_quantity: Optional[float] = None
    unsettled_quantity: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(
            symbol=data["symbol"],
            instrument_id=str(data["instrument_id"]),
            quantity=float(data["quantity"]),
            cost_basis=float(data["cost_basis"]),
            market_value=float(data["market_value"]),
            unrealized_profit_loss=float(data["unrealized_profit_loss"]),
            unrealized_profit_loss_percentage=float(data["unrealized_profit_loss_percentage"]),
            current_price=float(data["current_price"]),
            opened_at=opt_datetime(data.get("opened_at")),
            name=data.get("name"),
            security_type=data.get("security_type"),
            exchange=data.get("exchange"),
            currency=data.get("currency"),
            side=data.get("side"),
            tradable_quantity=opt_float(data.get("tradable_quantity")),
            unsettled_quantity=opt_float(data.get("unsettled_quantity")),
        )


@dataclass
class TradeHistory:
    id: str
    symbol: str
    instrument_id: str
    action: str
    quantity: float
    price: float
    amount: float
    trade_time: datetime
    status: str
    name: Optional[str] = None
    fees: Optional[float] = None
    order_id: Optional[str] = None
    currency: Optional[str] = None
    exchange: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TradeHistory":
        return cls(
            id=str(data["id"]),
            symbol=data["symbol"],
            instrument_id=str(data["instrument_id"]),
            action=data["action"],
            quantity=float(data["quantity"]),
            price=float(data["price"]),
            amount=float(data["amount"]),
            trade_time=parse_datetime(data["trade_time"]),
            status=data["status"],
            name=data.get("name"),
            fees=opt_float(data.get("fees")),
            order_id=data.get("order_id"),
            currency=data.get("currency"),
            exchange=data.get("exchange"),
        )


@dataclass
class BalanceParams:
    account_id: str
    total_asset_currency: str = "USD"

    def to_dict(self) -> Dict[str, Any]:
        return {"account_id": self.account_id, "total_asset_currency": self.total_asset_currency}


@dataclass
class PositionParams:
    """Page request for positions. Pass the last seen instrument id to continue."""

    account_id: str
    page_size: int = 100
    last_instrument_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return drop_none({
            "account_id": self.account_id,
            "page_size": self.page_size,
            "last_instrument_id": self.last_instrument_id,
        })


@dataclass
class TradeHistoryParams:
    account_id: str
    page: int = 1
    page_size: int = 20

    def to_dict(self) -> Dict[str, Any]:
        return {"account_id": self.account_id, "page": self.page, "page_size": self.page_size}
