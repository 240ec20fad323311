"""
Directory Search Client — business discovery via the OpenStreetMap Overpass API.

Builds one spatial query that unions a sector's primary and alternate tags
across nodes, ways and relations, then normalizes each returned element into
a CandidateRecord. De-duplicates by the ``type/id`` key: one physical feature
can match several tag alternatives and must appear only once.
"""

import logging

import aiohttp

from prospectflow.config import settings
from prospectflow.schemas import CandidateRecord, GeoPoint, Sector

logger = logging.getLogger("prospectflow.overpass")

# ─── Constants ─────────────────────────────────────────────────────────
QUERY_TIMEOUT_SECS = 25
GEOMETRY_KINDS = ("node", "way", "relation")
NAME_KEYS = ("name", "brand", "operator")
WEBSITE_KEYS = ("website", "contact:website", "url")
PHONE_KEYS = ("phone", "contact:phone", "telephone")
EMAIL_KEYS = ("email", "contact:email")


def build_overpass_query(sector: Sector, lat: float, lng: float, radius_m: int) -> str:
    """Overpass QL for every tag of the sector, expanded across all geometry kinds."""
    parts = [
        f'{kind}["{key}"="{value}"](around:{radius_m},{lat},{lng});'
        for key, value in sector.tags
        for kind in GEOMETRY_KINDS
    ]
    body = "\n  ".join(parts)
    return f"[out:json][timeout:{QUERY_TIMEOUT_SECS}];\n(\n  {body}\n);\nout center tags;"


async def _post_overpass(session: aiohttp.ClientSession, query: str) -> dict:
    """POST a query to the interpreter endpoint. Raises RuntimeError on a non-200 status."""
    timeout = aiohttp.ClientTimeout(total=max(settings.overpass_timeout, 20))
    async with session.post(settings.overpass_url, data={"data": query}, timeout=timeout) as resp:
        if resp.status != 200:
            text = await resp.text()
            raise RuntimeError(f"Overpass error {resp.status}: {text[:200]}")
        return await resp.json(content_type=None)


def _first_tag(tags: dict, keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = tags.get(key)
        if value:
            return value
    return None


def _format_address(tags: dict) -> str | None:
    street = tags.get("addr:street")
    if not street:
        return None
    parts = []
    if tags.get("addr:housenumber"):
        parts.append(tags["addr:housenumber"])
    parts.append(street)
    postcode = tags.get("addr:postcode")
    city = tags.get("addr:city")
    if postcode or city:
        parts.append(f"{postcode or ''} {city or ''}".strip())
    return ", ".join(parts)


def element_to_candidate(element: dict, sector: Sector, city: str) -> CandidateRecord | None:
    """Normalize one Overpass element. Returns None for unnamed or unlocated elements."""
    tags = element.get("tags") or {}

    name = _first_tag(tags, NAME_KEYS)
    if not name:
        return None

    # Nodes carry lat/lon directly; ways and relations only a centroid
    if element.get("lat") is not None and element.get("lon") is not None:
        lat, lng = element["lat"], element["lon"]
    elif element.get("center"):
        lat, lng = element["center"].get("lat"), element["center"].get("lon")
        if lat is None or lng is None:
            return None
    else:
        return None

    osm_type = element.get("type", "node")
    return CandidateRecord(
        external_id=f"{osm_type}/{element.get('id')}",
        osm_type=osm_type,
        name=name,
        lat=float(lat),
        lng=float(lng),
        address=_format_address(tags),
        phone=_first_tag(tags, PHONE_KEYS),
        email=_first_tag(tags, EMAIL_KEYS),
        website=_first_tag(tags, WEBSITE_KEYS),
        opening_hours=tags.get("opening_hours"),
        sector=sector.label,
        city=city,
        raw_tags={str(k): str(v) for k, v in tags.items()},
    )


def deduplicate(candidates: list[CandidateRecord]) -> list[CandidateRecord]:
    """Drop repeated external ids, keeping the first occurrence and input order."""
    seen: set[str] = set()
    unique: list[CandidateRecord] = []
    for candidate in candidates:
        if candidate.external_id in seen:
            continue
        seen.add(candidate.external_id)
        unique.append(candidate)
    return unique


def parse_elements(elements: list[dict], sector: Sector, city: str) -> list[CandidateRecord]:
    records = []
    for element in elements:
        record = element_to_candidate(element, sector, city)
        if record is not None:
            records.append(record)
    return deduplicate(records)


async def search_directory(
    sector: Sector,
    point: GeoPoint,
    radius_m: int,
    limit: int | None = None,
) -> list[CandidateRecord]:
    """
    Query the directory around a point.

    The result is de-duplicated first, then truncated to ``limit`` in input
    order. ``limit=None`` returns every unique candidate.
    """
    query = build_overpass_query(sector, point.lat, point.lng, radius_m)
    logger.info(
        "Overpass search: sector=%s city=%s radius=%dm", sector.code, point.city, radius_m
    )

    async with aiohttp.ClientSession(headers={"User-Agent": settings.http_user_agent}) as session:
        data = await _post_overpass(session, query)

    elements = data.get("elements") or []
    candidates = parse_elements(elements, sector, point.city)
    logger.info("Overpass returned %d elements → %d unique candidates", len(elements), len(candidates))

    if limit is not None:
        candidates = candidates[:limit]
    return candidates
