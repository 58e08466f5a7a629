"""
HTTP Transport

The auth manager and dispatcher only need "send a request, get status,
headers and body back". HttpTransport is that seam; AiohttpTransport is the
production implementation and tests substitute an in-memory fake.
"""

from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp
from loguru import logger

from .errors import NetworkError, SerializationError


@dataclass
class HttpResponse:
    """Status, lower-cased headers and decoded body text of one response."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    def retry_after(self, default: float = 1.0) -> float:
        """Seconds from the retry-after header, or default when absent or malformed."""
        raw = self.header("retry-after")
        if raw is None:
            return default
        try:
            return max(0.0, float(raw))
        except ValueError:
            return default

    def json(self) -> Any:
        try:
            return json.loads(self.text)
        except ValueError as e:
            raise SerializationError(f"Invalid JSON response: {e}") from e


class HttpTransport(ABC):
    """Abstract HTTP sender."""

    @abstractmethod
    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        """
        Send one request.

        Args:
            method: HTTP verb.
            url: Absolute URL.
            headers: Request headers.
            body: Pre-serialized JSON body.
            params: Query parameters.
            timeout: Overall deadline in seconds for this request.

        Raises:
            NetworkError: On any transport-level failure.
        """

    async def close(self) -> None:
        """Release pooled connections."""


class AiohttpTransport(HttpTransport):
    """
    HttpTransport backed by one lazily created aiohttp.ClientSession.

    Usage:
        transport = AiohttpTransport(timeout=30)
        resp = await transport.request("GET", "https://api.webull.com/ping")
        await transport.close()
    """

    def __init__(self, timeout: float = 30.0) -> None:
        self._timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            )
        return self._session

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        body: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        session = await self._get_session()
        req_timeout = aiohttp.ClientTimeout(total=timeout or self._timeout)
        try:
            async with session.request(
                method,
                url,
                headers=headers,
                data=body,
                params=params,
                timeout=req_timeout,
            ) as resp:
                text = await resp.text()
                return HttpResponse(
                    status=resp.status,
                    headers={k.lower(): v for k, v in resp.headers.items()},
                    text=text,
                )
        except asyncio.TimeoutError as e:
            logger.error(f"Timeout for {method} {url}")
            raise NetworkError(f"Request timed out: {method} {url}") from e
        except aiohttp.ClientError as e:
            logger.error(f"Connection error for {method} {url}: {e}")
            raise NetworkError(str(e)) from e

    async def close(self) -> None:
        """Close HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
