"""Market data endpoints."""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Sequence

from ..dispatcher import RequestDispatcher, list_of
from ..models import (
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


class MarketDataEndpoint:
    """Quotes, snapshots, bars, news, calendar, instruments and corporate actions."""

    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self._dispatcher = dispatcher

    async def get_quote(self, symbol: str) -> Quote:
        return await self._dispatcher.get(f"/api/quote/tickerRealTimes/{symbol}", model=Quote.from_dict)

    async def get_quotes(self, symbols: Sequence[str]) -> List[Quote]:
        return await self._dispatcher.post(
            "/api/quote/tickerRealTimes",
            {"symbols": list(symbols)},
            model=list_of(Quote.from_dict),
            cacheable=True,
        )

    async def get_snapshot(self, params: SnapshotParams) -> List[Quote]:
        return await self._dispatcher.post(
            "/api/quote/snapshot", params, model=list_of(Quote.from_dict), cacheable=True)

    async def get_stock_snapshot(self, symbol: str) -> List[Quote]:
        return await self.get_snapshot(SnapshotParams([symbol]))

    async def get_stock_snapshots(self, symbols: Sequence[str]) -> List[Quote]:
        return await self.get_snapshot(SnapshotParams(list(symbols)))

    async def get_bars(self, params: BarQueryParams) -> List[Bar]:
        return await self._dispatcher.post(
            "/api/quote/history/bars", params, model=list_of(Bar.from_dict), cacheable=True)

    async def get_daily_bars(self, symbol: str, count: int = 200) -> List[Bar]:
        return await self.get_bars(BarQueryParams(symbol, TimeFrame.DAY_1, count))

    async def get_intraday_bars(
        self,
        symbol: str,
        time_frame: TimeFrame = TimeFrame.MINUTE_5,
        count: int = 200,
    ) -> List[Bar]:
        if time_frame in (TimeFrame.DAY_1, TimeFrame.WEEK_1, TimeFrame.MONTH_1):
            raise ValueError(f"{time_frame.value} is not an intraday time frame")
        return await self.get_bars(BarQueryParams(symbol, time_frame, count))

    async def get_news(self, params: Optional[NewsQueryParams] = None) -> List[NewsArticle]:
        return await self._dispatcher.post(
            "/api/securities/news/list",
            params or NewsQueryParams(),
            model=list_of(NewsArticle.from_dict),
            cacheable=True,
        )

    async def get_market_calendar(self) -> List[str]:
        """Trading days as ISO date strings."""
        return await self._dispatcher.get(
            "/api/securities/financial/calendar", model=list_of(str))

    async def get_instruments(self, symbols: Sequence[str]) -> List[Instrument]:
        return await self._dispatcher.post(
            "/api/quote/instruments",
            InstrumentParams.for_symbols(symbols),
            model=list_of(Instrument.from_dict),
            cacheable=True,
        )

    async def get_stock_instrument(self, symbol: str) -> List[Instrument]:
        return await self.get_instruments([symbol])

    async def get_eod_bars(self, params: EodBarsParams) -> List[Bar]:
        """End-of-day bars. Only served by some regions (Webull JP)."""
        return await self._dispatcher.post(
            "/api/quote/eod/bars", params, model=list_of(Bar.from_dict), cacheable=True)

    async def get_instrument_eod_bars(
        self,
        instrument_id: str,
        count: int = 200,
        trade_date: Optional[date] = None,
    ) -> List[Bar]:
        return await self.get_eod_bars(EodBarsParams(instrument_id, count, trade_date))

    async def get_corp_actions(self, params: CorpActionParams) -> List[Instrument]:
        """
        Corporate actions for instruments.

        The server answers with the affected instruments. Only served by some
        regions (Webull JP).
        """
        return await self._dispatcher.post(
            "/api/quote/corp/action", params, model=list_of(Instrument.from_dict), cacheable=True)

    async def get_stock_splits(self, instrument_id: str) -> List[Instrument]:
        return await self.get_corp_actions(
            CorpActionParams(instrument_id, [CorpActionEventType.SPLIT]))

    async def get_reverse_stock_splits(self, instrument_id: str) -> List[Instrument]:
        return await self.get_corp_actions(
            CorpActionParams(instrument_id, [CorpActionEventType.REVERSE_SPLIT]))

    async def get_all_corp_actions(self, instrument_id: str) -> List[Instrument]:
        return await self.get_corp_actions(CorpActionParams(instrument_id))
