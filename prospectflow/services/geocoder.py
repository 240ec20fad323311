"""
Geocoder — free-text city name → GeoPoint via OpenStreetMap Nominatim.

Restricted to the configured country filter; the top match wins. A miss
returns None so the caller can abort the search with a user-facing message.
No retries: a network failure propagates to the orchestrator.
"""

import logging

import aiohttp

from prospectflow.config import settings
from prospectflow.schemas import GeoPoint

logger = logging.getLogger("prospectflow.geocoder")

# ─── Constants ─────────────────────────────────────────────────────────
MAX_MATCHES = 5
CITY_ADDRESS_KEYS = ("city", "town", "village", "municipality")


def _headers() -> dict[str, str]:
    return {
        "User-Agent": settings.http_user_agent,
        "Accept-Language": settings.accept_language,
    }


async def _request_nominatim(session: aiohttp.ClientSession, params: dict) -> list[dict]:
    """Single Nominatim search call. Raises RuntimeError on a non-200 status."""
    timeout = aiohttp.ClientTimeout(total=settings.geocode_timeout)
    async with session.get(settings.nominatim_url, params=params, timeout=timeout) as resp:
        if resp.status != 200:
            raise RuntimeError(f"Nominatim error: {resp.status}")
        return await resp.json(content_type=None)


def canonical_city(match: dict, fallback: str) -> str:
    """Pick the canonical locality name out of a Nominatim address block."""
    address = match.get("address") or {}
    for key in CITY_ADDRESS_KEYS:
        if address.get(key):
            return address[key]
    return fallback


async def geocode_city(city: str) -> GeoPoint | None:
    """Resolve a city name to coordinates. Returns None when nothing matches."""
    if not city or not city.strip():
        raise ValueError("City name must not be empty")

    query = city.strip()
    params = {
        "q": query,
        "format": "json",
        "limit": str(MAX_MATCHES),
        "addressdetails": "1",
        "countrycodes": settings.country_codes,
    }

    async with aiohttp.ClientSession(headers=_headers()) as session:
        results = await _request_nominatim(session, params)

    if not results:
        logger.info("No geocoding match for %r", query)
        return None

    top = results[0]
    point = GeoPoint(
        lat=float(top["lat"]),
        lng=float(top["lon"]),
        city=canonical_city(top, query),
        display_name=top.get("display_name", query),
    )
    logger.info("Geocoded %r → %s (%.5f, %.5f)", query, point.city, point.lat, point.lng)
    return point
