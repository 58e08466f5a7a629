"""Typed request/response models for the REST endpoints."""

from .account import (
    Account,
    AccountBalance,
    AccountProfile,
    AccountStatus,
    AccountType,
    BalanceParams,
    Position,
    PositionParams,
    TradeHistory,
    TradeHistoryParams,
)
from .market import (
    Bar,
    BarQueryParams,
    CorpActionEventType,
    CorpActionParams,
    EodBarsParams,
    Instrument,
    InstrumentParams,
    NewsArticle,
    NewsQueryParams,
    Quote,
    SnapshotParams,
    TimeFrame,
)
from .order import (
    Order,
    OrderPageParams,
    OrderQueryParams,
    OrderRequest,
    OrderResponse,
    OrderSide,
    OrderStatus,
    OrderType,
    TimeInForce,
    TrailingStopType,
)
from .watchlist import CreateWatchlistRequest, ModifyWatchlistRequest, Watchlist

__all__ = [
    # Account
    'Account',
    'AccountBalance',
    'AccountProfile',
    'AccountStatus',
    'AccountType',
    'BalanceParams',
    'Position',
    'PositionParams',
    'TradeHistory',
    'TradeHistoryParams',
    # Market data
    'Bar',
    'BarQueryParams',
    'CorpActionEventType',
    'CorpActionParams',
    'EodBarsParams',
    'Instrument',
    'InstrumentParams',
    'NewsArticle',
    'NewsQueryParams',
    'Quote',
    'SnapshotParams',
    'TimeFrame',
    # Orders
    'Order',
    'OrderPageParams',
    'OrderQueryParams',
    'OrderRequest',
    'OrderResponse',
    'OrderSide',
    'OrderStatus',
    'OrderType',
    'TimeInForce',
    'TrailingStopType',
    # Watchlists
    'CreateWatchlistRequest',
    'ModifyWatchlistRequest',
    'Watchlist',
]
