"""
Request Dispatcher

Executes one logical REST call: cache lookup, rate-limit admission, bearer
token, send, status classification, envelope unwrap, cache fill.

The dispatcher never retries. The one mandated wait is on HTTP 429, where
it sleeps the server's retry-after before raising RateLimitExceeded.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Callable, Dict, List, Optional, TypeVar
from urllib.parse import urlencode

from loguru import logger

from .auth import AuthManager
from .cache import CacheManager, ResponseCache
from .config import WebullConfig
from .errors import ApiError, RateLimitExceeded, SerializationError, Unauthorized
from .rate_limit import RateLimiter
from .responses import ApiEnvelope, Page, PaginatedEnvelope
from .transport import HttpResponse, HttpTransport

T = TypeVar("T")

Converter = Callable[[Any], Any]


def list_of(converter: Callable[[Any], T]) -> Callable[[Any], List[T]]:
    """Converter for a JSON array payload, e.g. ``list_of(Quote.from_dict)``."""
    def convert(data: Any) -> List[T]:
        if not isinstance(data, list):
            raise SerializationError(f"Expected JSON array, got {type(data).__name__}")
        return [converter(item) for item in data]
    return convert


def page_of(converter: Callable[[Any], T]) -> Callable[[Page[Any]], Page[T]]:
    """Converter for a paged payload, e.g. ``page_of(Order.from_dict)``."""
    def convert(page: Page[Any]) -> Page[T]:
        return Page([converter(item) for item in page.items], page.pagination)
    return convert


def serialize_body(body: Any) -> Optional[str]:
    """
    Canonical JSON for a request body.

    Keys are sorted so equal bodies produce equal cache keys. Objects with a
    ``to_dict()`` method are converted first.

    Raises:
        SerializationError: If the body is not JSON-serializable.
    """
    if body is None:
        return None
    if hasattr(body, "to_dict"):
        body = body.to_dict()
    try:
        return json.dumps(body, sort_keys=True, separators=(",", ":"), default=str)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"Cannot serialize request body: {e}") from e


def encode_query(params: Optional[Dict[str, Any]]) -> Optional[str]:
    if not params:
        return None
    items = sorted((k, v) for k, v in params.items() if v is not None)
    return urlencode(items, doseq=True) or None


class RequestDispatcher:
    """
    Core of every endpoint method.

    One instance is shared by all endpoint groups of a client, so the rate
    limiter and caches account globally for that client.

    Args:
        config: Client configuration.
        auth: AuthManager supplying bearer tokens.
        transport: HTTP transport.
        rate_limiter: Shared limiter. Defaults to one built from config.
        caches: Cache registry holding ``get`` and ``post`` caches.

    Example:
        >>> dispatcher = RequestDispatcher(config, auth, transport)
        >>> quote = await dispatcher.get("/api/quote/tickerRealTimes/AAPL", model=Quote.from_dict)
    """

    def __init__(
        self,
        config: WebullConfig,
        auth: AuthManager,
        transport: HttpTransport,
        rate_limiter: Optional[RateLimiter] = None,
        caches: Optional[CacheManager] = None,
    ) -> None:
        self.config = config
        self.auth = auth
        self._transport = transport
        self.rate_limiter = rate_limiter or RateLimiter(
            requests_per_minute=config.requests_per_minute,
            name="rest",
        )
        self.caches = caches or CacheManager.with_defaults(
            default_ttl=config.cache_ttl,
            max_entries=config.cache_max_entries,
        )

    @property
    def get_cache(self) -> ResponseCache[Any]:
        return self.caches.cache(CacheManager.GET)

    @property
    def post_cache(self) -> ResponseCache[Any]:
        return self.caches.cache(CacheManager.POST)

    # =========================================================================
    # Verb helpers
    # =========================================================================

    async def get(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        model: Optional[Converter] = None,
        ttl: Optional[float] = None,
    ) -> Any:
        return await self.execute("GET", path, params=params, model=model, ttl=ttl)

    async def post(
        self,
        path: str,
        body: Any = None,
        model: Optional[Converter] = None,
        cacheable: bool = False,
        ttl: Optional[float] = None,
        paged: bool = False,
    ) -> Any:
        return await self.execute(
            "POST", path, body=body, model=model, cacheable=cacheable, ttl=ttl, paged=paged)

    async def put(self, path: str, body: Any = None, model: Optional[Converter] = None) -> Any:
        return await self.execute("PUT", path, body=body, model=model)

    async def delete(self, path: str, model: Optional[Converter] = None) -> Any:
        return await self.execute("DELETE", path, model=model)

    # =========================================================================
    # Core
    # =========================================================================

    async def execute(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        model: Optional[Converter] = None,
        cacheable: Optional[bool] = None,
        ttl: Optional[float] = None,
        paged: bool = False,
    ) -> Any:
        """
        Perform one request.

        Args:
            method: GET, POST, PUT or DELETE.
            path: Path below the API root, e.g. ``/api/trade/order``.
            body: JSON-serializable body or object with ``to_dict()``.
            params: Query parameters.
            model: Converter applied to the payload (e.g. ``Order.from_dict``).
            cacheable: Cache the result. Defaults to True for GET only.
            ttl: Cache TTL override in seconds.
            paged: The payload is one page of a list. Keeps the envelope's
                pagination and hands ``model`` a ``Page``.

        Returns:
            The envelope payload, converted by ``model`` when given.

        Raises:
            Unauthorized: No valid token, or HTTP 401.
            RateLimitExceeded: HTTP 429, after sleeping retry-after.
            ApiError: Other non-2xx status, or envelope failure / missing data.
            NetworkError: Transport failure or timeout.
            SerializationError: Body or response is not valid JSON.
        """
        method = method.upper()
        body_str = serialize_body(body)
        query = encode_query(params)
        cache = self._cache_for(method, cacheable)

        if cache is not None:
            cached = cache.get(method, path, query, body_str)
            if cached is not None:
                logger.debug(f"Cache hit: {method} {path}")
                return self._convert(cached, model)

        await self.rate_limiter.wait(path)

        if self.config.auto_refresh_token:
            token = await self.auth.ensure_token()
        else:
            token = self.auth.get_token()

        resp = await self._transport.request(
            method,
            f"{self.config.api_url}{path}",
            headers=self._headers(token.token),
            body=body_str,
            params=params and {k: v for k, v in params.items() if v is not None},
            timeout=self.config.timeout,
        )

        data = await self._classify(method, path, resp, paged)

        if cache is not None:
            cache.set(method, path, data, query, body_str, ttl=ttl)
        elif method == "PUT":
            self.get_cache.clear()
            logger.debug(f"Invalidated GET cache after PUT {path}")
        elif method == "DELETE":
            self.get_cache.clear()
            self.post_cache.clear()
            logger.debug(f"Invalidated GET/POST caches after DELETE {path}")

        return self._convert(data, model)

    def _cache_for(self, method: str, cacheable: Optional[bool]) -> Optional[ResponseCache[Any]]:
        if method == "GET":
            return self.get_cache if cacheable is not False else None
        if method == "POST" and cacheable:
            return self.post_cache
        return None

    def _headers(self, bearer: str) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Authorization": f"Bearer {bearer}",
            "api-key": self.config.api_key,
            "device-id": self.config.device_id,
        }

    async def _classify(self, method: str, path: str, resp: HttpResponse, paged: bool = False) -> Any:
        if resp.status == 429:
            retry_after = resp.retry_after()
            logger.warning(f"Rate-limited on {method} {path}, sleeping {retry_after}s")
            await asyncio.sleep(retry_after)
            raise RateLimitExceeded(retry_after)
        if resp.status == 401:
            raise Unauthorized()
        if not resp.ok:
            logger.error(f"Error {resp.status} on {method} {path}: {resp.text[:200]}")
            raise ApiError(str(resp.status), resp.text)

        envelope_cls = PaginatedEnvelope if paged else ApiEnvelope
        envelope = envelope_cls.from_response(resp)
        if not envelope.is_ok():
            envelope.print_error()
        if paged:
            return envelope.get_page()
        return envelope.get_output()

    @staticmethod
    def _convert(data: Any, model: Optional[Converter]) -> Any:
        if model is None:
            return data
        try:
            return model(data)
        except SerializationError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise SerializationError(f"Cannot decode payload: {e}") from e

    def get_stats(self) -> Dict[str, Any]:
        return {
            'rate_limiter': self.rate_limiter.get_stats(),
            'caches': self.caches.get_stats(),
        }

    def __repr__(self) -> str:
        return f"RequestDispatcher(api_url={self.config.api_url!r})"
