"""
Audit-Based Scorer — refined prospect score once a site has been audited.

    prospect_score = BASE (50) + PERFORMANCE + SECURITY + MOBILE + SEO
                     + DESIGN_AGE + OBSOLETE_TECH + CHEAP_CMS
                     + CRITICAL_ISSUES + GOOGLE_RATING        (clamped 0–100)

A high prospect score means a weak site and therefore a good sales target.
The site quality score is a separate formula starting from 100; it is not
``100 - prospect_score``, since "good for visitors" and "good sales target"
are different axes.
"""

import logging
import random

from prospectflow.schemas import AuditResult, Priority, ScoreBreakdown, ScoringResult
from prospectflow.services.page_analysis import round_half_up

logger = logging.getLogger("prospectflow.audit_scoring")

# ─── Constants ─────────────────────────────────────────────────────────
BASE_SCORE = 50
NO_WEBSITE_BAND = (85, 94)
OBSOLETE_TECH = {"Flash", "Tables-layout", "Frames"}
CHEAP_CMS = {"Wix", "Jimdo", "Weebly", "Webnode", "e-monsite", "Google Sites"}
LOW_GOOGLE_RATING = 3.5


def _clamp(value: float) -> int:
    return max(0, min(100, round_half_up(value)))


# ═══════════════════════════════════════════════════════════════════════
# Prospect score contributions
# ═══════════════════════════════════════════════════════════════════════

def _score_performance(load_time_sec: float) -> int:
    # A fast site is a weaker lead
    if load_time_sec > 8:
        return 20
    if load_time_sec > 5:
        return 15
    if load_time_sec > 3:
        return 5
    return -5


def _score_mobile(audit: AuditResult) -> int:
    if not audit.is_responsive or not audit.has_viewport_meta:
        return 20
    if audit.mobile_score < 50:
        return 10
    return 0


def _score_seo(seo_score: int) -> int:
    if seo_score < 40:
        return 15
    if seo_score < 60:
        return 8
    return 0


def _score_design_age(design_age: int | None) -> int:
    if not design_age:
        return 0
    if design_age < 2015:
        return 15
    if design_age < 2018:
        return 8
    return 0


def score_to_priority(score: int) -> Priority:
    if score >= 80:
        return Priority.HOT
    if score >= 60:
        return Priority.HIGH
    if score >= 40:
        return Priority.MEDIUM
    if score >= 20:
        return Priority.LOW
    return Priority.COLD


def compute_prospect_score(
    has_website: bool,
    audit: AuditResult | None = None,
    google_rating: float | None = None,
    rng: random.Random | None = None,
) -> ScoringResult:
    """
    Score a prospect from its audit.

    Without a website the score is drawn from a fixed HOT band using ``rng``
    (seed it for deterministic output). With a website but no audit yet the
    result is a neutral 50/50 MEDIUM placeholder.
    """
    if not has_website:
        rng = rng or random.Random()
        return ScoringResult(
            prospect_score=rng.randint(*NO_WEBSITE_BAND),
            site_score=0,
            priority=Priority.HOT,
            breakdown=ScoreBreakdown(base=BASE_SCORE),
        )

    if audit is None:
        return ScoringResult(
            prospect_score=BASE_SCORE,
            site_score=50,
            priority=Priority.MEDIUM,
            breakdown=ScoreBreakdown(base=BASE_SCORE),
        )

    breakdown = ScoreBreakdown(
        base=BASE_SCORE,
        performance=_score_performance(audit.load_time_sec),
        security=0 if audit.has_ssl else 15,
        mobile=_score_mobile(audit),
        seo=_score_seo(audit.seo_score),
        design_age=_score_design_age(audit.design_age),
        obsolete_tech=10 if OBSOLETE_TECH.intersection(audit.tech_stack) else 0,
        cheap_cms=5 if audit.cms in CHEAP_CMS else 0,
        critical_issues=5 * sum(1 for i in audit.issues if i.severity == "high"),
        google_rating=8 if google_rating and google_rating < LOW_GOOGLE_RATING else 0,
    )

    prospect_score = _clamp(breakdown.total())
    return ScoringResult(
        prospect_score=prospect_score,
        site_score=compute_site_score(audit),
        priority=score_to_priority(prospect_score),
        breakdown=breakdown,
    )


# ═══════════════════════════════════════════════════════════════════════
# Site quality (higher = better site for visitors)
# ═══════════════════════════════════════════════════════════════════════

def compute_site_score(audit: AuditResult) -> int:
    score = 100

    if audit.load_time_sec > 8:
        score -= 35
    elif audit.load_time_sec > 5:
        score -= 25
    elif audit.load_time_sec > 3:
        score -= 12

    if not audit.has_ssl:
        score -= 25

    if not audit.is_responsive:
        score -= 20
    elif audit.mobile_score < 50:
        score -= 10

    score -= round_half_up((100 - audit.seo_score) * 0.15)

    if audit.design_age and audit.design_age < 2015:
        score -= 15
    elif audit.design_age and audit.design_age < 2018:
        score -= 8

    if "Flash" in audit.tech_stack:
        score -= 20
    if "Tables-layout" in audit.tech_stack:
        score -= 10

    return _clamp(score)
