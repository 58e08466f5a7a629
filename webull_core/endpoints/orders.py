"""Order endpoints."""

from __future__ import annotations

from typing import Any, List, Optional

from loguru import logger

from ..dispatcher import RequestDispatcher, list_of, page_of
from ..models import Order, OrderPageParams, OrderQueryParams, OrderRequest, OrderResponse
from ..responses import Page


class OrdersEndpoint:
    """Order entry, cancellation and queries."""

    def __init__(self, dispatcher: RequestDispatcher) -> None:
        self._dispatcher = dispatcher

    async def place_order(self, request: OrderRequest) -> OrderResponse:
        """
        Submit a new order.

        The request is validated locally first and never served from cache.

        Raises:
            InvalidRequest: If the request is missing fields its order type needs.
        """
        request.validate()
        response = await self._dispatcher.post(
            "/api/trade/order", request, model=OrderResponse.from_dict)
        # Cached order lists and balances no longer reflect the account
        self._dispatcher.caches.clear_all()
        logger.info(
            f"Order placed: {response.id} {request.side.value} {request.quantity} "
            f"{request.symbol} {request.order_type.value}"
        )
        return response

    async def cancel_order(self, order_id: str) -> Any:
        result = await self._dispatcher.delete(f"/api/trade/cancel/{order_id}")
        logger.info(f"Order cancel requested: {order_id}")
        return result

    async def modify_order(self, order_id: str, request: OrderRequest) -> OrderResponse:
        request.validate()
        return await self._dispatcher.put(
            f"/api/trade/modify/{order_id}", request, model=OrderResponse.from_dict)

    async def get_order(self, order_id: str) -> Order:
        return await self._dispatcher.get(f"/api/trade/order/{order_id}", model=Order.from_dict)

    async def get_orders(self, params: Optional[OrderQueryParams] = None) -> List[Order]:
        return await self._dispatcher.post(
            "/api/trade/orders",
            params or OrderQueryParams(),
            model=list_of(Order.from_dict),
            cacheable=True,
        )

    async def get_active_orders(self) -> List[Order]:
        return await self._dispatcher.get("/api/trade/active", model=list_of(Order.from_dict))

    async def get_filled_orders(self) -> List[Order]:
        return await self._dispatcher.get("/api/trade/filled", model=list_of(Order.from_dict))

    async def get_open_orders(self, account_id: str) -> List[Order]:
        return await self._dispatcher.get(
            f"/api/trade/account/{account_id}/orders/open", model=list_of(Order.from_dict))

    async def get_today_orders(self, account_id: str) -> List[Order]:
        return await self._dispatcher.get(
            f"/api/trade/account/{account_id}/orders/today", model=list_of(Order.from_dict))

    async def get_open_orders_paged(
        self,
        account_id: str,
        page_size: int = 100,
        last_order_id: Optional[str] = None,
    ) -> Page[Order]:
        """One page of open orders; pass the last client order id seen to continue."""
        return await self._dispatcher.post(
            "/api/trade/orders/open",
            OrderPageParams(account_id, page_size, last_order_id),
            model=page_of(Order.from_dict),
            cacheable=True,
            paged=True,
        )

    async def get_today_orders_paged(
        self,
        account_id: str,
        page_size: int = 100,
        last_order_id: Optional[str] = None,
    ) -> Page[Order]:
        return await self._dispatcher.post(
            "/api/trade/orders/today",
            OrderPageParams(account_id, page_size, last_order_id),
            model=page_of(Order.from_dict),
            cacheable=True,
            paged=True,
        )
