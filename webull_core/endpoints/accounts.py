"""Account endpoints."""

from __future__ import annotations

from typing import List

from ..dispatcher import RequestDispatcher, list_of, page_of
from ..models import (
    Account,
    AccountBalance,
    AccountProfile,
    BalanceParams,
    Position,
    PositionParams,
    TradeHistory,
    TradeHistoryParams,
)
from ..responses import Page


class AccountsEndpoint:
    """Accounts, balances, positions and trade history."""

    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self._dispatcher = dispatcher

    async def get_accounts(self) -> List[Account]:
        return await self._dispatcher.get(
            "/api/account/getSecAccountList", model=list_of(Account.from_dict))

    async def get_account(self, account_id: str) -> Account:
        return await self._dispatcher.get(
            f"/api/account/getAccountMembers/{account_id}", model=Account.from_dict)

    async def get_account_balance(self, account_id: str) -> AccountBalance:
        return await self._dispatcher.get(
            f"/api/asset/getAssetSummary/{account_id}", model=AccountBalance.from_dict)

    async def get_positions(self, account_id: str) -> List[Position]:
        return await self._dispatcher.get(
            f"/api/position/getUserPositions/{account_id}", model=list_of(Position.from_dict))

    async def get_position(self, account_id: str, symbol: str) -> Position:
        return await self._dispatcher.get(
            f"/api/position/getUserPositions/{account_id}/{symbol}", model=Position.from_dict)

    async def get_trade_history(self, account_id: str) -> List[TradeHistory]:
        return await self._dispatcher.get(
            f"/api/trade/history/{account_id}", model=list_of(TradeHistory.from_dict))

    async def get_trade_history_paged(
        self, account_id: str, page: int = 1, page_size: int = 20,
    ) -> Page[TradeHistory]:
        return await self._dispatcher.post(
            "/api/trade/history",
            TradeHistoryParams(account_id, page, page_size),
            model=page_of(TradeHistory.from_dict),
            cacheable=True,
            paged=True,
        )

    async def get_account_profile(self, account_id: str) -> AccountProfile:
        return await self._dispatcher.get(
            f"/api/account/profile/{account_id}", model=AccountProfile.from_dict)

    async def get_balance(self, params: BalanceParams) -> AccountBalance:
        return await self._dispatcher.post(
            "/api/account/balance", params, model=AccountBalance.from_dict, cacheable=True)

    async def get_positions_page(self, params: PositionParams) -> List[Position]:
        """One page of positions; continue with the last instrument id seen."""
        return await self._dispatcher.post(
            "/api/account/positions", params, model=list_of(Position.from_dict), cacheable=True)
