"""
Prospect store — minimal create/read contract over SQLAlchemy.

The pipeline never mutates business records itself; this store only keeps a
scored candidate snapshot and attaches audit snapshots on request.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from prospectflow.models.prospect import Prospect
from prospectflow.schemas import AuditResult, ScoredCandidate, ScoringResult

logger = logging.getLogger("prospectflow.store")


class ProspectStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, candidate: ScoredCandidate) -> Prospect:
        prospect = Prospect(
            external_id=candidate.external_id,
            name=candidate.name,
            city=candidate.city,
            sector=candidate.sector,
            website=candidate.website,
            prospect_score=candidate.prospect_score,
            site_quality_score=candidate.site_quality_score,
            priority=candidate.priority.value,
            candidate=candidate.model_dump(mode="json"),
        )
        self.session.add(prospect)
        await self._flush()
        await self.session.refresh(prospect)
        logger.info("Stored prospect %s (%s)", prospect.id, prospect.name)
        return prospect

    async def get(self, prospect_id: str) -> Prospect | None:
        return await self.session.get(Prospect, prospect_id)

    async def attach_audit(self, prospect_id: str, audit: AuditResult, scoring: ScoringResult) -> bool:
        """Store the latest audit and audit-based scores. False when the id is unknown."""
        prospect = await self.get(prospect_id)
        if prospect is None:
            return False

        # Screenshots are large and not needed for later scoring
        prospect.audit = audit.model_dump(mode="json", exclude={"screenshot_desktop", "screenshot_mobile"})
        prospect.prospect_score = scoring.prospect_score
        prospect.site_quality_score = scoring.site_score
        prospect.priority = scoring.priority.value
        prospect.score_breakdown = scoring.breakdown.model_dump() if scoring.breakdown else None
        prospect.audited_at = datetime.now(timezone.utc)
        await self._flush()
        return True

    async def _flush(self) -> None:
        try:
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
