from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
import redis
from fastapi import HTTPException
from starlette.requests import Request

from tempolink import rate_limiter
from tempolink.domain.addresses.schemas import AddressCreate
from tempolink.domain.addresses.service import AddressService, format_address, normalize_address
from tempolink.models import Address
from tempolink.services import geocoding
from tempolink.services.geocoding import GeocodingError, build_address_query

from .factories import make_user


def fake_async_client(response=None, error=None):
    """Stand-in for httpx.AsyncClient used as an async context manager"""
    client = MagicMock()
    client.get = AsyncMock(return_value=response, side_effect=error)
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = client
    factory.return_value.__aexit__.return_value = False
    return factory, client


def nominatim_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else []
    return response


# ============================================================================
# Addresses
# ============================================================================


class TestAddressFormatting:
    def test_normalize_drops_blank_parts(self):
        parts = normalize_address(AddressCreate(street=" 1 Main St ", aptUnit="  ", city="Springfield"))
        assert parts == {"street": "1 Main St", "city": "Springfield"}

    def test_format_address(self):
        parts = {
            "street": "1 Main St",
            "aptUnit": "Apt 2",
            "city": "Springfield",
            "state": "IL",
            "postalCode": "62701",
            "country": "USA",
        }
        assert format_address(parts) == "1 main st apt 2, springfield, il, 62701, usa"
        assert format_address({"postalCode": "62701"}) == "62701"


@pytest.fixture
def no_queue():
    with patch("tempolink.domain.addresses.service.create_pool", new=AsyncMock(side_effect=ConnectionError)):
        yield


class TestAddressService:
    @pytest.mark.asyncio
    async def test_create_is_deduplicated(self, db, no_queue):
        service = AddressService(db)
        first, existing = await service.create_address(AddressCreate(street="1 Main St", city="Springfield"))
        assert existing is False
        again, existing = await service.create_address(AddressCreate(street="1 MAIN ST ", city="springfield"))
        assert existing is True
        assert again.id == first.id

    @pytest.mark.asyncio
    async def test_create_queues_geocoding(self, db):
        pool = MagicMock()
        pool.enqueue_job = AsyncMock()
        with patch("tempolink.domain.addresses.service.create_pool", new=AsyncMock(return_value=pool)):
            address, _ = await AddressService(db).create_address(AddressCreate(city="Springfield"))
        pool.enqueue_job.assert_awaited_once_with("geocode_address_task", address.id)

    @pytest.mark.asyncio
    async def test_empty_address(self, db, no_queue):
        with pytest.raises(HTTPException) as exc:
            await AddressService(db).create_address(AddressCreate(street="  "))
        assert exc.value.status_code == 400

    @pytest.mark.asyncio
    async def test_link_and_unlink(self, db, no_queue):
        user = make_user(db, "clerk_user", "STUDENT")
        service = AddressService(db)
        address, _ = await service.create_address(AddressCreate(city="Springfield"))

        _, existing = service.link_address(address.id, user)
        assert existing is False
        _, existing = service.link_address(address.id, user)
        assert existing is True
        assert [a.id for a in service.get_user_addresses(user)] == [address.id]

        service.unlink_address(address.id, user)
        with pytest.raises(HTTPException) as exc:
            service.unlink_address(address.id, user)
        assert exc.value.status_code == 404

    @pytest.mark.asyncio
    async def test_postal_address_reuses_matching_row(self, db, no_queue):
        service = AddressService(db)
        created, _ = await service.create_address(AddressCreate(postalCode="K1A 0B1", country="United States"))

        with patch(
            "tempolink.domain.addresses.service.geocode_postal_code", new=AsyncMock(return_value=(45.4, -75.7))
        ):
            address = await service.get_or_create_postal_address(" K1A 0B1 ")

        assert address.id == created.id
        assert address.address_formatted == "k1a 0b1, united states"
        assert (address.latitude, address.longitude) == (45.4, -75.7)
        assert db.query(Address).count() == 1

    def test_link_unknown_address(self, db):
        user = make_user(db, "clerk_user", "STUDENT")
        with pytest.raises(HTTPException) as exc:
            AddressService(db).link_address("missing", user)
        assert exc.value.status_code == 404


# ============================================================================
# Geocoding
# ============================================================================


def test_build_address_query_skips_unit():
    query = build_address_query({"street": "1 Main St", "aptUnit": "2B", "city": "Springfield", "postalCode": "62701"})
    assert query == "1 Main St, Springfield, 62701"


class TestGeocodeQuery:
    @pytest.mark.asyncio
    async def test_match(self):
        factory, client = fake_async_client(nominatim_response(payload=[{"lat": "39.78", "lon": "-89.65"}]))
        with patch.object(geocoding.httpx, "AsyncClient", factory):
            assert await geocoding.geocode_query("Springfield") == (39.78, -89.65)
        params = client.get.call_args.kwargs["params"]
        assert params == {"format": "json", "q": "Springfield", "limit": "1"}
        assert "User-Agent" in client.get.call_args.kwargs["headers"]

    @pytest.mark.asyncio
    async def test_no_match(self):
        factory, _ = fake_async_client(nominatim_response(payload=[]))
        with patch.object(geocoding.httpx, "AsyncClient", factory):
            assert await geocoding.geocode_query("Atlantis") is None

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        factory, _ = fake_async_client(nominatim_response(status_code=503))
        with patch.object(geocoding.httpx, "AsyncClient", factory):
            with pytest.raises(GeocodingError):
                await geocoding.geocode_query("Springfield")

    @pytest.mark.asyncio
    async def test_transport_error(self):
        factory, _ = fake_async_client(error=httpx.ConnectError("refused"))
        with patch.object(geocoding.httpx, "AsyncClient", factory):
            with pytest.raises(GeocodingError):
                await geocoding.geocode_query("Springfield")


class TestGeocodeWithRetry:
    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self):
        with patch.object(
            geocoding, "geocode_query", new=AsyncMock(side_effect=[GeocodingError("429"), (1.0, 2.0)])
        ) as query:
            assert await geocoding.geocode_with_retry("x", base_delay=0) == (1.0, 2.0)
        assert query.await_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        with patch.object(geocoding, "geocode_query", new=AsyncMock(side_effect=GeocodingError("down"))) as query:
            with pytest.raises(GeocodingError):
                await geocoding.geocode_with_retry("x", max_retries=3, base_delay=0)
        assert query.await_count == 3


class TestGeocodePostalCode:
    @pytest.mark.asyncio
    async def test_cache_hit(self):
        cache = MagicMock()
        cache.get.return_value = "[40.1, -75.2]"
        with patch.object(geocoding, "get_redis_client", return_value=cache), patch.object(
            geocoding, "geocode_query", new=AsyncMock()
        ) as query:
            assert await geocoding.geocode_postal_code(" 19103 ") == (40.1, -75.2)
        cache.get.assert_called_once_with("geocode:postal:19103")
        query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cache_miss_stores_result(self):
        cache = MagicMock()
        cache.get.return_value = None
        with patch.object(geocoding, "get_redis_client", return_value=cache), patch.object(
            geocoding, "geocode_query", new=AsyncMock(return_value=(40.1, -75.2))
        ) as query:
            assert await geocoding.geocode_postal_code("19103") == (40.1, -75.2)
        query.assert_awaited_once_with("19103, United States")
        cache.setex.assert_called_once()

    @pytest.mark.asyncio
    async def test_redis_down_still_geocodes(self):
        with patch.object(
            geocoding, "get_redis_client", side_effect=redis.ConnectionError("down")
        ), patch.object(geocoding, "geocode_query", new=AsyncMock(return_value=(40.1, -75.2))):
            assert await geocoding.geocode_postal_code("19103") == (40.1, -75.2)

    @pytest.mark.asyncio
    async def test_geocoding_error_returns_none(self):
        cache = MagicMock()
        cache.get.return_value = None
        with patch.object(geocoding, "get_redis_client", return_value=cache), patch.object(
            geocoding, "geocode_query", new=AsyncMock(side_effect=GeocodingError("down"))
        ):
            assert await geocoding.geocode_postal_code("19103") is None
        cache.setex.assert_not_called()


# ============================================================================
# Rate limiting
# ============================================================================


def fake_redis(count, ttl):
    client = MagicMock()
    client.pipeline.return_value.execute.return_value = [count, ttl]
    return client


def make_request(ip="10.0.0.1", forwarded=None):
    headers = [(b"x-forwarded-for", forwarded.encode())] if forwarded else []
    return Request({"type": "http", "method": "GET", "path": "/", "headers": headers, "client": (ip, 1234)})


class TestRateLimiter:
    def test_first_request_sets_expiry(self):
        client = fake_redis(1, -1)
        allowed, count, ttl = rate_limiter.check_rate_limit("k", 30, 60, client)
        assert (allowed, count, ttl) == (True, 1, 60)
        client.expire.assert_called_once_with("k", 60)

    def test_over_limit(self):
        allowed, count, _ = rate_limiter.check_rate_limit("k", 30, 60, fake_redis(31, 12))
        assert (allowed, count) == (False, 31)

    @pytest.mark.asyncio
    async def test_dependency_raises_429(self):
        limiter = rate_limiter.create_rate_limiter(limit=2, window_seconds=60, key_prefix="test")
        client = fake_redis(3, 42)
        with patch.object(rate_limiter, "get_redis_client", return_value=client):
            with pytest.raises(HTTPException) as exc:
                await limiter(make_request(forwarded="203.0.113.9, 10.0.0.1"))
        assert exc.value.status_code == 429
        assert exc.value.headers == {"Retry-After": "42"}
        client.pipeline.return_value.incr.assert_called_once_with("test:203.0.113.9")

    @pytest.mark.asyncio
    async def test_fails_open_without_redis(self):
        limiter = rate_limiter.create_rate_limiter(limit=2, window_seconds=60, key_prefix="test")
        with patch.object(rate_limiter, "get_redis_client", side_effect=redis.ConnectionError("down")):
            assert await limiter(make_request()) is None
