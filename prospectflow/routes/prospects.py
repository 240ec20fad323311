"""
Prospect routes — streaming search, on-demand audit, minimal store.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from prospectflow.database import get_db
from prospectflow.pipeline.events import EventChannel, format_sse
from prospectflow.pipeline.orchestrator import SearchOrchestrator
from prospectflow.schemas import (
    AuditRequest,
    AuditResponse,
    ProspectResponse,
    ScoredCandidate,
    SearchRequest,
)
from prospectflow.services.audit_runner import AuditRunner, AuditWorkerError, get_audit_runner
from prospectflow.services.audit_scoring import compute_prospect_score
from prospectflow.services.page_analysis import normalize_url
from prospectflow.services.sectors import resolve_sector
from prospectflow.services.store import ProspectStore

logger = logging.getLogger(__name__)

prospects_router = APIRouter(prefix="/prospects", tags=["prospects"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

# Strong references so running searches are not garbage-collected
_background_tasks: set[asyncio.Task] = set()


def _sse_error(message: str, status_code: int = 400) -> Response:
    return Response(
        content=format_sse("error", {"message": message}),
        status_code=status_code,
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in exc.errors()
    )


# ── Search (SSE) ────────────────────────────────────────

@prospects_router.post("/search")
async def search_prospects(request: Request):
    """Stream one search as Server-Sent Events."""
    try:
        raw = await request.json()
    except ValueError:
        return _sse_error("Invalid request body")

    try:
        req = SearchRequest.model_validate(raw)
    except ValidationError as exc:
        return _sse_error(_validation_message(exc))

    if not req.city.strip():
        return _sse_error("City name is required")

    sector = resolve_sector(req.sector)
    if sector is None:
        return _sse_error(f"Unknown sector: {req.sector}")

    channel = EventChannel()

    async def _run_search():
        try:
            await SearchOrchestrator(req, sector, channel.send).run()
        except Exception as exc:
            logger.error("Search task crashed: %s", exc)
        finally:
            channel.finish()

    task = asyncio.create_task(_run_search())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)

    async def event_generator():
        try:
            async for frame in channel.stream():
                yield frame
        finally:
            channel.close()

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# ── Audit ───────────────────────────────────────────────

@prospects_router.post("/audit", response_model=AuditResponse)
async def audit_prospect(
    req: AuditRequest,
    runner: AuditRunner = Depends(get_audit_runner),
    session: AsyncSession = Depends(get_db),
):
    try:
        url = normalize_url(req.url)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    store = ProspectStore(session)
    google_rating = None
    if req.prospect_id:
        try:
            existing = await store.get(req.prospect_id)
            if existing is not None:
                google_rating = (existing.candidate or {}).get("google_rating")
        except Exception as exc:
            logger.warning("Could not load prospect %s: %s", req.prospect_id, exc)

    try:
        audit = await runner.run(url, screenshots=req.screenshots)
    except AuditWorkerError as exc:
        logger.error("Audit failed for %s (%s): %s", url, exc.kind, exc)
        raise HTTPException(status_code=502, detail=f"Audit failed: {exc}")
    except Exception as exc:
        logger.error("Audit failed for %s: %s", url, exc)
        raise HTTPException(status_code=502, detail=f"Audit failed: {exc}")

    scoring = compute_prospect_score(True, audit, google_rating=google_rating)

    if req.prospect_id:
        try:
            if not await store.attach_audit(req.prospect_id, audit, scoring):
                logger.warning("Audit not saved: prospect %s not found", req.prospect_id)
        except Exception as exc:
            logger.warning("Audit not saved for %s: %s", req.prospect_id, exc)

    return AuditResponse(audit=audit, scoring=scoring)


# ── Store ───────────────────────────────────────────────

@prospects_router.post("", response_model=ProspectResponse, status_code=201)
async def create_prospect(candidate: ScoredCandidate, session: AsyncSession = Depends(get_db)):
    prospect = await ProspectStore(session).create(candidate)
    return ProspectResponse.model_validate(prospect)


@prospects_router.get("/{prospect_id}", response_model=ProspectResponse)
async def get_prospect(prospect_id: str, session: AsyncSession = Depends(get_db)):
    prospect = await ProspectStore(session).get(prospect_id)
    if prospect is None:
        raise HTTPException(status_code=404, detail=f"Prospect {prospect_id} not found")
    return ProspectResponse.model_validate(prospect)
