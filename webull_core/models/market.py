"""Market data models: quotes, bars, news, instruments, corporate actions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from .common import drop_none, format_datetime, opt_float, parse_datetime

STOCK_CATEGORY = "US_STOCK"
MAX_EOD_BARS = 800


class TimeFrame(str, Enum):
    MINUTE_1 = "m1"
    MINUTE_5 = "m5"
    MINUTE_15 = "m15"
    MINUTE_30 = "m30"
    HOUR_1 = "h1"
    HOUR_4 = "h4"
    DAY_1 = "d1"
    WEEK_1 = "w1"
    MONTH_1 = "mo1"


@dataclass
class Quote:
    symbol: str
    last_price: float
    timestamp: datetime
    change: float = 0.0
    change_percent: float = 0.0
    volume: int = 0
    average_volume: int = 0
    bid_price: float = 0.0
    bid_size: int = 0
    ask_price: float = 0.0
    ask_size: int = 0
    high: float = 0.0
    low: float = 0.0
    open: float = 0.0
    prev_close: float = 0.0
    fifty_two_week_high: float = 0.0
    fifty_two_week_low: float = 0.0
    market_cap: Optional[float] = None
    pe_ratio: Optional[float] = None

    @property
    def spread(self) -> float:
        if self.bid_price <= 0 or self.ask_price <= 0:
            return 0.0
        return self.ask_price - self.bid_price

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Quote":
        return cls(
            symbol=data["symbol"],
            last_price=float(data["last_price"]),
            timestamp=parse_datetime(data["timestamp"]),
            change=float(data.get("change") or 0.0),
            change_percent=float(data.get("change_percent") or 0.0),
            volume=int(data.get("volume") or 0),
            average_volume=int(data.get("average_volume") or 0),
            bid_price=float(data.get("bid_price") or 0.0),
            bid_size=int(data.get("bid_size") or 0),
            ask_price=float(data.get("ask_price") or 0.0),
            ask_size=int(data.get("ask_size") or 0),
            high=float(data.get("high") or 0.0),
            low=float(data.get("low") or 0.0),
            open=float(data.get("open") or 0.0),
            prev_close=float(data.get("prev_close") or 0.0),
            fifty_two_week_high=float(data.get("fifty_two_week_high") or 0.0),
            fifty_two_week_low=float(data.get("fifty_two_week_low") or 0.0),
            market_cap=opt_float(data.get("market_cap")),
            pe_ratio=opt_float(data.get("pe_ratio")),
        )


@dataclass
class Bar:
    """OHLCV bar."""

    symbol: str
    open: float
    high: float
    low: float
    close: float
    volume: int
    timestamp: datetime

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Bar":
        return cls(
            symbol=data["symbol"],
            open=float(data["open"]),
            high=float(data["high"]),
            low=float(data["low"]),
            close=float(data["close"]),
            volume=int(data["volume"]),
            timestamp=parse_datetime(data["timestamp"]),
        )


@dataclass
class SnapshotParams:
    symbols: List[str]
    category: str = STOCK_CATEGORY

    def to_dict(self) -> Dict[str, Any]:
        return {"symbols": ",".join(self.symbols), "category": self.category}


@dataclass
class BarQueryParams:
    symbol: str
    time_frame: TimeFrame = TimeFrame.DAY_1
    count: int = 200
    category: str = STOCK_CATEGORY

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "category": self.category,
            "timespan": self.time_frame.value,
            "count": str(self.count),
        }


@dataclass
class InstrumentParams:
    symbols: List[str]
    category: str = STOCK_CATEGORY

    @classmethod
    def for_symbols(cls, symbols: Sequence[str]) -> "InstrumentParams":
        return cls(list(symbols))

    def to_dict(self) -> Dict[str, Any]:
        return {"symbols": ",".join(self.symbols), "category": self.category}


@dataclass
class Instrument:
    id: str
    symbol: str
    name: str
    exchange: str
    security_type: str
    region: str
    currency: str
    tradable: bool = True
    shortable: bool = False
    marginable: bool = False
    fractional_tradable: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Instrument":
        return cls(
            id=str(data["id"]),
            symbol=data["symbol"],
            name=data["name"],
            exchange=data["exchange"],
            security_type=data["security_type"],
            region=data["region"],
            currency=data["currency"],
            tradable=bool(data.get("tradable", True)),
            shortable=bool(data.get("shortable", False)),
            marginable=bool(data.get("marginable", False)),
            fractional_tradable=bool(data.get("fractional_tradable", False)),
        )


@dataclass
class NewsArticle:
    id: str
    title: str
    url: str
    source: str
    publish_date: datetime
    summary: str = ""
    symbols: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NewsArticle":
        return cls(
            id=str(data["id"]),
            title=data["title"],
            url=data["url"],
            source=data["source"],
            publish_date=parse_datetime(data["publish_date"]),
            summary=data.get("summary") or "",
            symbols=list(data.get("symbols") or []),
        )


@dataclass
class NewsQueryParams:
    symbol: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return drop_none({
            "symbol": self.symbol,
            "start_date": format_datetime(self.start_date),
            "end_date": format_datetime(self.end_date),
            "limit": self.limit,
        })


def _ids(value: Union[str, Sequence[str]]) -> str:
    return value if isinstance(value, str) else ",".join(value)


@dataclass
class EodBarsParams:
    """End-of-day bars by instrument id. At most 800 bars per instrument."""

    instrument_ids: Union[str, List[str]]
    count: int = 200
    trade_date: Optional[date] = None

    def __post_init__(self) -> None:
        if not 0 < self.count <= MAX_EOD_BARS:
            raise ValueError(f"count must be between 1 and {MAX_EOD_BARS}")

    def to_dict(self) -> Dict[str, Any]:
        return drop_none({
            "instrument_ids": _ids(self.instrument_ids),
            "date": self.trade_date.isoformat() if self.trade_date else None,
            "count": str(self.count),
        })


class CorpActionEventType(str, Enum):
    SPLIT = "SPLIT"
    REVERSE_SPLIT = "REVERSE_SPLIT"


@dataclass
class CorpActionParams:
    """Corporate action query. Page size is capped at 200 by the server."""

    instrument_ids: Union[str, List[str]]
    event_types: List[CorpActionEventType] = field(
        default_factory=lambda: [CorpActionEventType.SPLIT, CorpActionEventType.REVERSE_SPLIT])
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    page_number: Optional[int] = None
    page_size: Optional[int] = None
    last_update_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return drop_none({
            "instrument_ids": _ids(self.instrument_ids),
            "event_types": ",".join(e.value for e in self.event_types),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "page_number": self.page_number,
            "page_size": self.page_size,
            "last_update_time": (
                self.last_update_time.strftime("%Y-%m-%d %H:%M:%S")
                if self.last_update_time else None
            ),
        })
