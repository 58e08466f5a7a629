"""Watchlist models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .common import drop_none


@dataclass
class Watchlist:
    id: str
    name: str
    symbols: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Watchlist":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            symbols=list(data.get("symbols") or []),
        )


@dataclass
class CreateWatchlistRequest:
    name: str
    symbols: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "symbols": list(self.symbols)}


@dataclass
class ModifyWatchlistRequest:
    id: str
    name: Optional[str] = None
    add_symbols: Optional[List[str]] = None
    remove_symbols: Optional[List[str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return drop_none({
            "id": self.id,
            "name": self.name,
            "add_symbols": self.add_symbols,
            "remove_symbols": self.remove_symbols,
        })
