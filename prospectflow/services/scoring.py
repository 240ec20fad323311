"""
Lightweight Scorer — prospect score from directory data alone.

    prospect_score = NO_SITE (60) | HTTP_ONLY (25) + CHEAP_BUILDER (15)
                     + MISSING_PHONE (5) + MISSING_EMAIL (5) + MISSING_ADDRESS (5)

capped at 100. A higher score means a weaker web presence and therefore a
better sales lead. This scorer never fetches anything: it only reads fields
already present on the CandidateRecord, so it runs on thousands of records
with zero network calls.
"""

import logging

from prospectflow.schemas import CandidateRecord, LightScoreBreakdown, Priority, ScoredCandidate

logger = logging.getLogger("prospectflow.scoring")

# ─── Constants ─────────────────────────────────────────────────────────
NO_WEBSITE_POINTS = 60
HTTP_ONLY_POINTS = 25
CHEAP_BUILDER_POINTS = 15
MISSING_CONTACT_POINTS = 5
MAX_SCORE = 100

# Site builders that usually mean a low-end, DIY site
CHEAP_BUILDERS = [
    "wix.com", "wixsite.com", "jimdo.com", "jimdofree.com",
    "webnode.fr", "e-monsite.com", "free.fr", "perso.wanadoo.fr",
    "pagesperso-orange.fr", "voila.fr", "multimania.com",
    "over-blog.com", "overblog.com", "blogger.com",
    "wordpress.com", "sites.google.com",
]

# ISP free hosting; only counted when no builder matched
FREE_HOSTING = ["free.fr", "orange.fr", "sfr.fr", "neuf.fr"]

PRIORITY_THRESHOLDS = [
    (80, Priority.HOT),
    (60, Priority.HIGH),
    (40, Priority.MEDIUM),
    (20, Priority.LOW),
]


def detect_cheap_hosting(website: str) -> list[str]:
    """Human-readable findings for every builder (or, failing that, free host) in the URL."""
    url = website.lower()
    found = [f"Site hosted on {b} (basic site builder)" for b in CHEAP_BUILDERS if b in url]
    if not found:
        found = [f"Site hosted on {h} (free/basic hosting)" for h in FREE_HOSTING if h in url]
    return found


def is_http_only(website: str) -> bool:
    return website.lower().startswith("http://")


def calculate_prospect_score(record: CandidateRecord) -> tuple[int, LightScoreBreakdown]:
    """Returns (score, breakdown)."""
    breakdown = LightScoreBreakdown()

    if not record.website:
        breakdown.no_website = NO_WEBSITE_POINTS
    else:
        if is_http_only(record.website):
            breakdown.http_only = HTTP_ONLY_POINTS
        if detect_cheap_hosting(record.website):
            breakdown.cheap_builder = CHEAP_BUILDER_POINTS

    if not record.phone:
        breakdown.missing_phone = MISSING_CONTACT_POINTS
    if not record.email:
        breakdown.missing_email = MISSING_CONTACT_POINTS
    if not record.address:
        breakdown.missing_address = MISSING_CONTACT_POINTS

    total = min(MAX_SCORE, sum(breakdown.model_dump().values()))
    return total, breakdown


def get_priority(score: int) -> Priority:
    for threshold, priority in PRIORITY_THRESHOLDS:
        if score >= threshold:
            return priority
    return Priority.COLD


def build_issues(record: CandidateRecord, breakdown: LightScoreBreakdown) -> list[str]:
    # A missing email scores points but is not listed as an issue
    issues = []
    if breakdown.no_website:
        issues.append("No website found: direct opportunity")
    if breakdown.http_only:
        issues.append("Site served over HTTP: no SSL certificate")
    if record.website:
        issues.extend(detect_cheap_hosting(record.website))
    if breakdown.missing_phone:
        issues.append("No phone number listed")
    if breakdown.missing_address:
        issues.append("Address not listed on OpenStreetMap")
    return issues


def build_scored_candidate(record: CandidateRecord) -> ScoredCandidate:
    """Score one record. The site quality score stays empty until an audit runs."""
    score, breakdown = calculate_prospect_score(record)
    return ScoredCandidate(
        **record.model_dump(exclude={"has_website"}),
        prospect_score=score,
        priority=get_priority(score),
        site_quality_score=None,
        issues=build_issues(record, breakdown),
    )


def score_and_sort(records: list[CandidateRecord]) -> list[ScoredCandidate]:
    """Score every record, best prospects first. Ties keep directory order."""
    scored = [build_scored_candidate(r) for r in records]
    scored.sort(key=lambda c: c.prospect_score, reverse=True)
    return scored
