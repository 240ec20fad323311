"""
Search Orchestrator — drives one search through geocode → directory search →
lightweight scoring → optional enrichment, emitting progress events.

Events (in order): status, geocode, overpass, scored, enrich*, then exactly
one terminal ``done`` or ``error``. Emission is best-effort: a failing
callback (closed channel, broken transport) is swallowed so a disconnected
caller never breaks the pipeline.
"""

import asyncio
import logging
from typing import Callable, Optional

import aiohttp

from prospectflow.schemas import (
    EnrichmentResult,
    EnrichmentTarget,
    GeoPoint,
    ScoredCandidate,
    SearchRequest,
    Sector,
)
from prospectflow.services import enrichment, geocoder, overpass, scoring

logger = logging.getLogger("prospectflow.orchestrator")

# Only the highest-scoring prefix is enriched, independent of the result cap
ENRICH_LIMIT = 20

PHASES = [
    ("geocode", "Locating city"),
    ("overpass", "Searching OpenStreetMap"),
    ("scoring", "Scoring prospects"),
    ("enrich", "Enriching from map listings"),
]


def merge_enrichment(candidate: ScoredCandidate, data: EnrichmentResult) -> ScoredCandidate:
    """Directory fields win; rating and review count come from the listing."""
    return candidate.model_copy(update={
        "website": candidate.website or data.website,
        "phone": candidate.phone or data.phone,
        "address": candidate.address or data.address,
        "google_rating": data.google_rating,
        "google_review_count": data.google_review_count,
    })


def describe_error(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "External service timed out"
    if isinstance(exc, aiohttp.ClientError):
        return f"Network error: {exc}"
    return str(exc) or exc.__class__.__name__


def _serialize(candidates: list[ScoredCandidate]) -> list[dict]:
    return [c.model_dump(mode="json") for c in candidates]


class SearchOrchestrator:
    """Runs the full search pipeline for one request."""

    def __init__(
        self,
        request: SearchRequest,
        sector: Sector,
        event_callback: Optional[Callable[[str, dict], None]] = None,
    ):
        self.request = request
        self.sector = sector
        self._event_fn = event_callback
        # Intermediate results
        self.point: GeoPoint | None = None
        self.scored: list[ScoredCandidate] = []

    async def run(self) -> list[ScoredCandidate] | None:
        """Returns the final candidates, or None when the search ended in an error."""
        logger.info(
            "Search: sector=%s city=%r radius=%skm limit=%d enrich=%s",
            self.sector.code, self.request.city, self.request.radius_km,
            self.request.result_limit, self.request.enrich,
        )
        try:
            self.point = await self._phase_geocode()
            if self.point is None:
                self._emit("error", {"message": f"City not found: {self.request.city}"})
                return None

            found = await self._phase_directory(self.point)
            if not found:
                self._emit("done", {"candidates": []})
                return []

            self.scored = self._phase_scoring(found)
            if not self.request.enrich:
                self._emit("done", {"candidates": _serialize(self.scored)})
                return self.scored

            final = await self._phase_enrich(self.scored)
            self._emit("done", {"candidates": _serialize(final)})
            return final

        except Exception as exc:
            logger.error("Search failed (%s / %s): %s", self.sector.code, self.request.city, exc)
            self._emit("error", {"message": describe_error(exc)})
            return None

    # ── Phases ──────────────────────────────────────────

    async def _phase_geocode(self) -> GeoPoint | None:
        self._status("geocode")
        point = await geocoder.geocode_city(self.request.city)
        if point is not None:
            self._emit("geocode", {
                "city": point.city,
                "display_name": point.display_name,
                "lat": point.lat,
                "lng": point.lng,
            })
        return point

    async def _phase_directory(self, point: GeoPoint) -> list:
        self._status("overpass")
        radius_m = int(round(self.request.radius_km * 1000))
        # Uncapped here: the cap applies after scoring
        found = await overpass.search_directory(self.sector, point, radius_m)
        self._emit("overpass", {"count": min(len(found), self.request.result_limit)})
        return found

    def _phase_scoring(self, found: list) -> list[ScoredCandidate]:
        self._status("scoring")
        scored = scoring.score_and_sort(found)[: self.request.result_limit]
        self._emit("scored", {"candidates": _serialize(scored)})
        return scored

    async def _phase_enrich(self, scored: list[ScoredCandidate]) -> list[ScoredCandidate]:
        self._status("enrich")
        head, tail = scored[:ENRICH_LIMIT], scored[ENRICH_LIMIT:]
        targets = [EnrichmentTarget(name=c.name, city=c.city) for c in head]

        def on_progress(index: int, total: int) -> None:
            self._emit("enrich", {"index": index, "total": total, "name": targets[index - 1].name})

        results = await enrichment.enrich_batch(targets, on_progress)
        enriched = [merge_enrichment(c, r) for c, r in zip(head, results)]
        return enriched + tail

    # ── Helpers ─────────────────────────────────────────

    def _status(self, step: str) -> None:
        message = dict(PHASES).get(step, step)
        self._emit("status", {"step": step, "message": message})

    def _emit(self, event_type: str, data: dict) -> None:
        if not self._event_fn:
            return
        try:
            self._event_fn(event_type, data)
        except Exception as e:
            logger.debug("Dropped %s event: %s", event_type, e)
