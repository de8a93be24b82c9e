"""
Nominatim (OpenStreetMap) geocoding.

No API key required, but Nominatim's usage policy asks for an identifying
User-Agent and modest request rates, so postal-code lookups are cached.
"""

import asyncio
import json
import logging
import os
from typing import Optional

import httpx
import redis

from ..config import NOMINATIM_URL, NOMINATIM_USER_AGENT
from ..rate_limiter import get_redis_client

logger = logging.getLogger(__name__)

CACHE_SECONDS = int(os.getenv("GEOCODE_CACHE_SECONDS", "86400"))
MAX_RETRIES = 3
BASE_RETRY_DELAY = 2.0


class GeocodingError(Exception):
    """Raised when Nominatim cannot be reached or answers with an error"""


def build_address_query(address: dict) -> str:
    """Free-form query for a structured address. Apartment/unit is left out."""
    parts = [
        address.get("street"),
        address.get("city"),
        address.get("state"),
        address.get("postalCode") or address.get("postal_code"),
        address.get("country"),
    ]
    return ", ".join(p.strip() for p in parts if p and p.strip())


async def geocode_query(query: str) -> Optional[tuple[float, float]]:
    """
    Look up a single best match.

    Returns:
        (latitude, longitude), or None when Nominatim has no match

    Raises:
        GeocodingError: on transport failures or HTTP errors
    """
    params = {"format": "json", "q": query, "limit": "1"}
    headers = {"User-Agent": NOMINATIM_USER_AGENT}

    try:
        async with httpx.AsyncClient() as client:
            resp = await client.get(NOMINATIM_URL, params=params, headers=headers, timeout=10.0)
    except httpx.HTTPError as e:
        raise GeocodingError(f"Nominatim request failed: {e}") from e

    if resp.status_code >= 400:
        raise GeocodingError(f"Nominatim API error: {resp.status_code}")

    data = resp.json()
    if data and data[0].get("lat") and data[0].get("lon"):
        return float(data[0]["lat"]), float(data[0]["lon"])

    logger.info(f"🔍 No geocoding match for: {query}")
    return None


async def geocode_with_retry(
    query: str, max_retries: int = MAX_RETRIES, base_delay: float = BASE_RETRY_DELAY
) -> Optional[tuple[float, float]]:
    """geocode_query with exponential backoff (base_delay * 2^attempt) between attempts"""
    for attempt in range(max_retries):
        try:
            return await geocode_query(query)
        except GeocodingError as e:
            if attempt == max_retries - 1:
                logger.error(f"❌ Geocoding failed after {max_retries} attempts: {e}")
                raise
            delay = base_delay * (2**attempt)
            logger.warning(f"⚠️ Geocoding attempt {attempt + 1} failed, retrying in {delay}s: {e}")
            await asyncio.sleep(delay)
    return None


async def geocode_postal_code(postal_code: str) -> Optional[tuple[float, float]]:
    """Geocode a US postal code, cached in Redis"""
    postal_code = postal_code.strip()
    cache_key = f"geocode:postal:{postal_code.lower()}"

    try:
        cached = get_redis_client().get(cache_key)
        if cached:
            lat, lon = json.loads(cached)
            return lat, lon
    except redis.RedisError as e:
        logger.warning(f"⚠️ Geocode cache read error: {e}")

    try:
        coords = await geocode_query(f"{postal_code}, United States")
    except GeocodingError as e:
        logger.error(f"❌ Error geocoding postal code {postal_code}: {e}")
        return None

    if coords:
        try:
            get_redis_client().setex(cache_key, CACHE_SECONDS, json.dumps(list(coords)))
        except redis.RedisError as e:
            logger.warning(f"⚠️ Geocode cache write error: {e}")
    return coords
