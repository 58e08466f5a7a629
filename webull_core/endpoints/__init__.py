"""Endpoint groups. Each wraps the client's shared RequestDispatcher."""

from .accounts import AccountsEndpoint
from .market_data import MarketDataEndpoint
from .orders import OrdersEndpoint
from .watchlists import WatchlistsEndpoint

__all__ = [
    'AccountsEndpoint',
    'MarketDataEndpoint',
    'OrdersEndpoint',
    'WatchlistsEndpoint',
]
