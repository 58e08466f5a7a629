"""Streaming subscription requests."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

SUBSCRIBE = "SUBSCRIBE"
UNSUBSCRIBE = "UNSUBSCRIBE"


class SubscriptionType(str, Enum):
    QUOTE = "QUOTE"
    ORDER = "ORDER"
    ACCOUNT = "ACCOUNT"
    TRADE = "TRADE"


@dataclass
class SubscriptionRequest:
    """
    One subscription: a data type plus the symbols or account it covers.

    Example:
        >>> req = SubscriptionRequest.quotes(["AAPL", "MSFT"])
        >>> req.control_message(SUBSCRIBE)
        '{"action": "SUBSCRIBE", "request": {"type": "QUOTE", "symbols": ["AAPL", "MSFT"]}}'
    """

    subscription_type: SubscriptionType
    symbols: List[str] = field(default_factory=list)
    account_id: Optional[str] = None

    @classmethod
    def quotes(cls, symbols: Sequence[str]) -> "SubscriptionRequest":
        return cls(SubscriptionType.QUOTE, symbols=list(symbols))

    @classmethod
    def trades(cls, symbols: Sequence[str]) -> "SubscriptionRequest":
        return cls(SubscriptionType.TRADE, symbols=list(symbols))

    @classmethod
    def orders(cls, account_id: str) -> "SubscriptionRequest":
        return cls(SubscriptionType.ORDER, account_id=account_id)

    @classmethod
    def account(cls, account_id: str) -> "SubscriptionRequest":
        return cls(SubscriptionType.ACCOUNT, account_id=account_id)

    @property
    def key(self) -> Tuple[str, Tuple[str, ...], Optional[str]]:
        """Identity used to track active subscriptions."""
        return (self.subscription_type.value, tuple(sorted(self.symbols)), self.account_id)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"type": self.subscription_type.value}
        if self.symbols:
            out["symbols"] = list(self.symbols)
        if self.account_id is not None:
            out["account_id"] = self.account_id
        return out

    def control_message(self, action: str) -> str:
        if action not in (SUBSCRIBE, UNSUBSCRIBE):
            raise ValueError(f"Unknown subscription action: {action}")
        return json.dumps({"action": action, "request": self.to_dict()})
