"""
ProspectFlow — Pydantic request/response schemas and pipeline value types.
"""

from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, computed_field


class Priority(str, Enum):
    HOT = "HOT"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    COLD = "COLD"


class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class IssueCategory(str, Enum):
    PERFORMANCE = "performance"
    SECURITY = "security"
    MOBILE = "mobile"
    SEO = "seo"
    DESIGN = "design"
    LEGAL = "legal"


# ── Reference data & discovery ──────────────────────────


class GeoPoint(BaseModel):
    lat: float
    lng: float
    city: str
    display_name: str

    model_config = {"frozen": True}


class Sector(BaseModel):
    code: str
    label: str
    primary_tag: tuple[str, str]
    alternate_tags: tuple[tuple[str, str], ...] = ()

    model_config = {"frozen": True}

    @property
    def tags(self) -> list[tuple[str, str]]:
        return [self.primary_tag, *self.alternate_tags]


class CandidateRecord(BaseModel):
    """One normalized directory entry, one per physical business location."""

    external_id: str
    osm_type: str
    name: str
    lat: float
    lng: float
    address: str | None = None
    phone: str | None = None
    email: str | None = None
    website: str | None = None
    opening_hours: str | None = None
    sector: str
    city: str
    raw_tags: dict[str, str] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @computed_field  # type: ignore[misc]
    @property
    def has_website(self) -> bool:
        return bool(self.website)


class ScoredCandidate(CandidateRecord):
    prospect_score: int = Field(..., ge=0, le=100)
    priority: Priority
    site_quality_score: int | None = Field(None, ge=0, le=100)
    issues: list[str] = Field(default_factory=list)
    google_rating: float | None = None
    google_review_count: int | None = None


class LightScoreBreakdown(BaseModel):
    no_website: int = 0
    http_only: int = 0
    cheap_builder: int = 0
    missing_phone: int = 0
    missing_email: int = 0
    missing_address: int = 0


# ── Audit ───────────────────────────────────────────────


class AuditIssue(BaseModel):
    label: str
    severity: Severity
    category: IssueCategory
    description: str | None = None
    recommendation: str | None = None

    model_config = {"frozen": True, "use_enum_values": True}


class AuditResult(BaseModel):
    """One technical snapshot of one site at one point in time."""

    url: str
    scanned_at: str
    mobile_score: int = 0
    seo_score: int = 0
    performance_score: int = 0
    load_time_sec: float = 0.0
    page_size: int = 0

    has_ssl: bool = False
    is_responsive: bool = False
    has_viewport_meta: bool = False
    has_title: bool = False
    title: str | None = None
    has_meta_description: bool = False
    meta_description: str | None = None
    has_h1: bool = False
    h1_text: str | None = None
    has_open_graph: bool = False
    has_sitemap: bool = False
    has_robots_txt: bool = False
    has_canonical: bool = False
    has_legal_notice: bool = False

    cms: str | None = None
    tech_stack: list[str] = Field(default_factory=list)
    design_age: int | None = None
    images_without_alt: int = 0
    stylesheets: list[str] = Field(default_factory=list)

    issues: list[AuditIssue] = Field(default_factory=list)

    screenshot_desktop: str | None = None
    screenshot_mobile: str | None = None

    model_config = {"frozen": True}


class ScoreBreakdown(BaseModel):
    base: int = 50
    performance: int = 0
    security: int = 0
    mobile: int = 0
    seo: int = 0
    design_age: int = 0
    obsolete_tech: int = 0
    cheap_cms: int = 0
    critical_issues: int = 0
    google_rating: int = 0

    def total(self) -> int:
        return sum(self.model_dump().values())


class ScoringResult(BaseModel):
    prospect_score: int
    site_score: int
    priority: Priority
    breakdown: ScoreBreakdown | None = None


# ── Enrichment ──────────────────────────────────────────


class EnrichmentTarget(BaseModel):
    name: str
    city: str

    model_config = {"frozen": True}


class EnrichmentResult(BaseModel):
    google_rating: float | None = None
    google_review_count: int | None = None
    website: str | None = None
    phone: str | None = None
    address: str | None = None
    is_open: bool | None = None
    source_url: str | None = None

    model_config = {"frozen": True}


# ── API requests / responses ────────────────────────────


class SearchRequest(BaseModel):
    sector: str = Field(
        ...,
        min_length=1,
        max_length=100,
        validation_alias=AliasChoices("sectorIdentifier", "sector"),
    )
    city: str = Field(
        ...,
        max_length=255,
        validation_alias=AliasChoices("cityName", "city"),
    )
    radius_km: float = Field(
        5, gt=0, le=50, validation_alias=AliasChoices("radiusKm", "radius_km")
    )
    result_limit: int = Field(
        50, ge=1, le=500, validation_alias=AliasChoices("resultLimit", "result_limit", "limit")
    )
    enrich: bool = Field(False, validation_alias=AliasChoices("enrich", "enrichGmaps"))

    model_config = {"populate_by_name": True}


class AuditRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048)
    screenshots: bool = Field(
        False, validation_alias=AliasChoices("screenshotsRequested", "screenshots")
    )
    prospect_id: str | None = Field(
        None, max_length=36, validation_alias=AliasChoices("prospectId", "prospect_id")
    )

    model_config = {"populate_by_name": True}


class AuditResponse(BaseModel):
    audit: AuditResult
    scoring: ScoringResult


class ProspectResponse(BaseModel):
    id: str
    external_id: str | None = None
    name: str
    city: str | None = None
    sector: str | None = None
    website: str | None = None
    prospect_score: int
    site_quality_score: int | None = None
    priority: str
    candidate: dict[str, Any]
    audit: dict[str, Any] | None = None
    score_breakdown: dict[str, Any] | None = None
    audited_at: Any = None
    created_at: Any = None

    model_config = {"from_attributes": True}


class SectorResponse(BaseModel):
    code: str
    label: str
    primary_tag: tuple[str, str]
    alternate_tags: list[tuple[str, str]]


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
