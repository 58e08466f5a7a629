"""Tests for RequestDispatcher: caching, admission, status mapping."""
import json
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from tests.mocks.mock_transport import envelope_response, error_envelope, page_response, token_response
from webull_core.auth import AccessToken, AuthManager
from webull_core.cache import CacheManager
from webull_core.config import WebullConfig
from webull_core.dispatcher import RequestDispatcher, encode_query, list_of, page_of, serialize_body
from webull_core.errors import (
    ApiError,
    NetworkError,
    RateLimitExceeded,
    SerializationError,
    Unauthorized,
)
from webull_core.models import Quote
from webull_core.rate_limit import RateLimiter
from webull_core.transport import HttpResponse


class TestHelpers:

    def test_serialize_body_sorted_compact(self):
        assert serialize_body({"b": 1, "a": 2}) == '{"a":2,"b":1}'

    def test_serialize_body_none(self):
        assert serialize_body(None) is None

    def test_serialize_body_uses_to_dict(self):
        class Params:
            def to_dict(self):
                return {"symbol": "AAPL"}
        assert serialize_body(Params()) == '{"symbol":"AAPL"}'

    def test_serialize_body_failure(self):
        class Loop(dict):
            pass
        body = Loop()
        body["self"] = body
        with pytest.raises(SerializationError):
            serialize_body(body)

    def test_encode_query_sorted_drops_none(self):
        assert encode_query({"b": 2, "a": 1, "c": None}) == "a=1&b=2"
        assert encode_query(None) is None
        assert encode_query({"a": None}) is None

    def test_list_of_rejects_non_list(self):
        with pytest.raises(SerializationError):
            list_of(str)({"not": "a list"})


class TestRequestShape:

    @pytest.mark.asyncio
    async def test_get_attaches_bearer_and_url(self, dispatcher, transport, config):
        transport.queue_data({"ok": True})
        await dispatcher.get("/api/thing", params={"x": 1, "skip": None})

        req = transport.last_request
        assert req.method == "GET"
        assert req.url == f"{config.base_url}/api/thing"
        assert req.headers["Authorization"] == "Bearer access-1"
        assert req.headers["api-key"] == "test-key"
        assert req.params == {"x": 1}
        assert req.body is None
        assert req.timeout == config.timeout

    @pytest.mark.asyncio
    async def test_post_sends_serialized_body(self, dispatcher, transport):
        transport.queue_data({"id": "1"})
        await dispatcher.post("/api/thing", {"b": 2, "a": 1})
        assert transport.last_request.body == '{"a":1,"b":2}'

    @pytest.mark.asyncio
    async def test_paper_config_targets_paper_server(self, transport, utc_clock):
        cfg = WebullConfig(
            api_key="k", api_secret="s",
            base_url="https://live.example.com",
            paper_base_url="https://paper.example.com",
            paper_trading=True,
        )
        auth = AuthManager(cfg, transport, clock=utc_clock)
        auth.token_store.store(AccessToken("t", utc_clock() + timedelta(hours=1)))
        transport.queue_data(1)
        await RequestDispatcher(cfg, auth, transport).get("/api/x")
        assert transport.last_request.url == "https://paper.example.com/api/x"

    @pytest.mark.asyncio
    async def test_model_conversion(self, dispatcher, transport):
        transport.queue_data([{"symbol": "AAPL", "last_price": "190.5", "timestamp": "2024-01-02T15:30:00Z"}])
        quotes = await dispatcher.get("/api/q", model=list_of(Quote.from_dict))
        assert isinstance(quotes[0], Quote)
        assert quotes[0].last_price == 190.5

    @pytest.mark.asyncio
    async def test_model_conversion_failure(self, dispatcher, transport):
        transport.queue_data([{"last_price": "1", "timestamp": "2024-01-02T15:30:00Z"}])
        with pytest.raises(SerializationError):
            await dispatcher.get("/api/q", model=list_of(Quote.from_dict))

    @pytest.mark.asyncio
    async def test_paged_post_keeps_pagination(self, dispatcher, transport):
        transport.queue(page_response(
            [{"symbol": "AAPL", "last_price": "190.5", "timestamp": "2024-01-02T15:30:00Z"}],
            page=1, page_size=1, total=2, total_pages=2,
        ))
        page = await dispatcher.post("/api/q", {"page": 1}, model=page_of(Quote.from_dict), paged=True)
        assert isinstance(page.items[0], Quote)
        assert page.pagination.total_pages == 2
        assert page.has_next

    @pytest.mark.asyncio
    async def test_paged_without_pagination(self, dispatcher, transport):
        transport.queue_data([])
        page = await dispatcher.post("/api/q", model=page_of(Quote.from_dict), paged=True)
        assert page.items == []
        assert page.pagination is None


class TestAuthGate:

    @pytest.mark.asyncio
    async def test_no_token_unauthorized_before_send(self, config, auth, transport):
        dispatcher = RequestDispatcher(config, auth, transport)
        with pytest.raises(Unauthorized):
            await dispatcher.get("/api/x")
        assert transport.call_count == 0

    @pytest.mark.asyncio
    async def test_expired_token_unauthorized(self, dispatcher, transport, utc_clock):
        utc_clock.advance(7200)
        with pytest.raises(Unauthorized):
            await dispatcher.get("/api/x")
        assert transport.call_count == 0

    @pytest.mark.asyncio
    async def test_auto_refresh_refreshes_near_expiry(self, authed, transport, utc_clock):
        cfg = WebullConfig(
            api_key="test-key", api_secret="test-secret", device_id="device-1",
            base_url="https://api.test.local", auto_refresh_token=True,
            token_refresh_buffer=300,
        )
        authed.config = cfg
        dispatcher = RequestDispatcher(cfg, authed, transport)
        utc_clock.advance(3600 - 60)
        transport.queue(token_response("access-2"), envelope_response("ok"))

        assert await dispatcher.get("/api/x") == "ok"
        assert transport.last_request.headers["Authorization"] == "Bearer access-2"


class TestStatusMapping:
    """HTTP status and envelope classification."""

    @pytest.mark.asyncio
    async def test_401(self, dispatcher, transport):
        transport.queue(HttpResponse(401, {}, "nope"))
        with pytest.raises(Unauthorized):
            await dispatcher.get("/api/x")

    @pytest.mark.asyncio
    async def test_429_sleeps_retry_after_then_raises(self, dispatcher, transport):
        transport.queue(HttpResponse(429, {"retry-after": "3"}, ""))
        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RateLimitExceeded) as exc_info:
                await dispatcher.get("/api/x")
        mock_sleep.assert_awaited_once_with(3.0)
        assert exc_info.value.retry_after == 3.0
        assert transport.call_count == 1  # no retry

    @pytest.mark.asyncio
    async def test_429_default_wait(self, dispatcher, transport):
        transport.queue(HttpResponse(429, {}, ""))
        with patch("asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RateLimitExceeded):
                await dispatcher.get("/api/x")
        mock_sleep.assert_awaited_once_with(1.0)

    @pytest.mark.asyncio
    async def test_500_api_error(self, dispatcher, transport):
        transport.queue(HttpResponse(500, {}, "boom"))
        with pytest.raises(ApiError) as exc_info:
            await dispatcher.get("/api/x")
        assert exc_info.value == ApiError("500", "boom")

    @pytest.mark.asyncio
    async def test_envelope_failure(self, dispatcher, transport):
        transport.queue(error_envelope("X1", "bad"))
        with pytest.raises(ApiError) as exc_info:
            await dispatcher.get("/api/x")
        assert exc_info.value == ApiError("X1", "bad")

    @pytest.mark.asyncio
    async def test_envelope_without_data(self, dispatcher, transport):
        transport.queue(HttpResponse(200, {}, json.dumps({"success": True})))
        with pytest.raises(ApiError) as exc_info:
            await dispatcher.get("/api/x")
        assert exc_info.value.code == "no_data"

    @pytest.mark.asyncio
    async def test_invalid_json(self, dispatcher, transport):
        transport.queue(HttpResponse(200, {}, "not json"))
        with pytest.raises(SerializationError):
            await dispatcher.get("/api/x")

    @pytest.mark.asyncio
    async def test_network_error_propagates(self, dispatcher, transport):
        transport.queue(NetworkError("reset"))
        with pytest.raises(NetworkError):
            await dispatcher.get("/api/x")

    @pytest.mark.asyncio
    async def test_errors_not_cached(self, dispatcher, transport):
        transport.queue(HttpResponse(500, {}, "boom"), envelope_response("ok"))
        with pytest.raises(ApiError):
            await dispatcher.get("/api/x")
        assert await dispatcher.get("/api/x") == "ok"
        assert transport.call_count == 2


class TestCaching:
    """Cache fill and invalidation by verb."""

    @pytest.mark.asyncio
    async def test_get_cached(self, dispatcher, transport):
        transport.queue_data({"v": 1})
        first = await dispatcher.get("/api/x", params={"a": 1})
        second = await dispatcher.get("/api/x", params={"a": 1})
        assert first == second == {"v": 1}
        assert transport.call_count == 1

    @pytest.mark.asyncio
    async def test_get_distinct_query_not_shared(self, dispatcher, transport):
        transport.queue_data(1).queue_data(2)
        assert await dispatcher.get("/api/x", params={"a": 1}) == 1
        assert await dispatcher.get("/api/x", params={"a": 2}) == 2

    @pytest.mark.asyncio
    async def test_get_expires_after_ttl(self, config, authed, transport, clock):
        dispatcher = RequestDispatcher(
            config, authed, transport,
            caches=CacheManager.with_defaults(default_ttl=10, clock=clock),
        )
        transport.queue_data(1).queue_data(2)
        assert await dispatcher.get("/api/x") == 1
        clock.advance(11)
        assert await dispatcher.get("/api/x") == 2

    @pytest.mark.asyncio
    async def test_get_opt_out(self, dispatcher, transport):
        transport.queue_data(1).queue_data(2)
        await dispatcher.execute("GET", "/api/x", cacheable=False)
        assert await dispatcher.execute("GET", "/api/x", cacheable=False) == 2

    @pytest.mark.asyncio
    async def test_post_not_cached_by_default(self, dispatcher, transport):
        transport.queue_data(1).queue_data(2)
        await dispatcher.post("/api/order", {"q": 1})
        assert await dispatcher.post("/api/order", {"q": 1}) == 2
        assert len(dispatcher.post_cache) == 0

    @pytest.mark.asyncio
    async def test_cacheable_post_keyed_on_body(self, dispatcher, transport):
        transport.queue_data("aapl").queue_data("msft")
        assert await dispatcher.post("/api/q", {"s": "AAPL"}, cacheable=True) == "aapl"
        assert await dispatcher.post("/api/q", {"s": "MSFT"}, cacheable=True) == "msft"
        assert await dispatcher.post("/api/q", {"s": "AAPL"}, cacheable=True) == "aapl"
        assert transport.call_count == 2

    @pytest.mark.asyncio
    async def test_cache_hit_skips_rate_limiter_and_auth(self, dispatcher, transport, utc_clock):
        transport.queue_data(1)
        await dispatcher.get("/api/x")
        usage = dispatcher.rate_limiter.current_usage("/api/x")
        utc_clock.advance(7200)  # token now expired
        assert await dispatcher.get("/api/x") == 1
        assert dispatcher.rate_limiter.current_usage("/api/x") == usage

    @pytest.mark.asyncio
    async def test_put_invalidates_get_cache(self, dispatcher, transport):
        transport.queue_data(1).queue_data("put-ok").queue_data(2)
        await dispatcher.get("/api/x")
        await dispatcher.put("/api/y", {"z": 1})
        assert await dispatcher.get("/api/x") == 2

    @pytest.mark.asyncio
    async def test_delete_invalidates_get_and_post(self, dispatcher, transport):
        transport.queue_data(1).queue_data("p1").queue_data("deleted")
        await dispatcher.get("/api/x")
        await dispatcher.post("/api/q", {"s": 1}, cacheable=True)
        await dispatcher.delete("/api/y")
        assert len(dispatcher.get_cache) == 0
        assert len(dispatcher.post_cache) == 0

    @pytest.mark.asyncio
    async def test_model_conversion_applied_on_cache_hit(self, dispatcher, transport):
        transport.queue_data({"symbol": "AAPL", "last_price": 1, "timestamp": "2024-01-02T15:30:00Z"})
        raw = await dispatcher.get("/api/q")
        typed = await dispatcher.get("/api/q", model=Quote.from_dict)
        assert isinstance(raw, dict)
        assert isinstance(typed, Quote)


class TestRateLimiting:

    @pytest.mark.asyncio
    async def test_admission_keyed_by_path(self, config, authed, transport, clock):
        limiter = RateLimiter(requests_per_minute=1, clock=clock)
        dispatcher = RequestDispatcher(config, authed, transport, rate_limiter=limiter)
        transport.queue_data(1).queue_data(2).queue_data(3)

        await dispatcher.execute("GET", "/api/a", cacheable=False)
        await dispatcher.execute("GET", "/api/b", cacheable=False)

        async def fake_sleep(seconds):
            clock.advance(seconds)

        with patch("asyncio.sleep", side_effect=fake_sleep) as mock_sleep:
            await dispatcher.execute("GET", "/api/a", cacheable=False)
        mock_sleep.assert_awaited_once_with(60.0)

    def test_defaults_from_config(self, config, authed, transport):
        dispatcher = RequestDispatcher(config, authed, transport)
        assert dispatcher.rate_limiter.requests_per_minute == config.requests_per_minute
        assert dispatcher.get_cache.default_ttl == config.cache_ttl
        stats = dispatcher.get_stats()
        assert set(stats['caches']) == {"get", "post"}
