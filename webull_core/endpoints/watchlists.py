"""Watchlist endpoints."""

from __future__ import annotations

from typing import Any, List, Sequence

from ..dispatcher import RequestDispatcher, list_of
from ..models import CreateWatchlistRequest, ModifyWatchlistRequest, Watchlist


class WatchlistsEndpoint:
    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self._dispatcher = dispatcher

    async def get_watchlists(self) -> List[Watchlist]:
        return await self._dispatcher.get("/api/wlas/watchlist", model=list_of(Watchlist.from_dict))

    async def get_watchlist(self, watchlist_id: str) -> Watchlist:
        return await self._dispatcher.get(f"/api/wlas/watchlist/{watchlist_id}", model=Watchlist.from_dict)

    async def create_watchlist(self, request: CreateWatchlistRequest) -> Watchlist:
        return await self._dispatcher.post("/api/wlas/watchlist", request, model=Watchlist.from_dict)

    async def modify_watchlist(self, request: ModifyWatchlistRequest) -> Watchlist:
        watchlist = await self._dispatcher.post(
            "/api/wlas/watchlist/modify", request, model=Watchlist.from_dict)
        # Modifications go through POST, so reads of this watchlist are stale now
        self._dispatcher.get_cache.clear()
        return watchlist

    async def delete_watchlist(self, watchlist_id: str) -> Any:
        return await self._dispatcher.delete(f"/api/wlas/watchlist/delete/{watchlist_id}")

    async def add_symbols(self, watchlist_id: str, symbols: Sequence[str]) -> Watchlist:
        return await self.modify_watchlist(
            ModifyWatchlistRequest(id=watchlist_id, add_symbols=list(symbols)))

    async def remove_symbols(self, watchlist_id: str, symbols: Sequence[str]) -> Watchlist:
        return await self.modify_watchlist(
            ModifyWatchlistRequest(id=watchlist_id, remove_symbols=list(symbols)))

    async def rename_watchlist(self, watchlist_id: str, name: str) -> Watchlist:
        return await self.modify_watchlist(ModifyWatchlistRequest(id=watchlist_id, name=name))
