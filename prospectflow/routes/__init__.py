"""
API Routes — health, sector reference data.
"""

import logging

from fastapi import APIRouter

from prospectflow import __version__
from prospectflow.schemas import HealthResponse, SectorResponse
from prospectflow.services.sectors import SECTORS

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Health ──────────────────────────────────────────────

@router.get("/health", response_model=HealthResponse, tags=["system"])
async def health():
    return HealthResponse(status="ok", version=__version__)


# ── Sectors ─────────────────────────────────────────────

@router.get("/sectors", response_model=list[SectorResponse], tags=["reference"])
async def list_sectors():
    return [
        SectorResponse(
            code=s.code,
            label=s.label,
            primary_tag=s.primary_tag,
            alternate_tags=list(s.alternate_tags),
        )
        for s in SECTORS
    ]
