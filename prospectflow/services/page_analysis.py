"""
Page Analysis — turns a captured page snapshot into an AuditResult.

Everything here is pure: the browser side (``site_audit``) only captures raw
HTML plus a tiny mobile layout measurement, and all signal extraction,
fingerprinting, scoring and issue generation happens in these functions so
they can be exercised against fixture HTML without a browser.

Each extraction step is guarded on its own: a step that fails degrades to
its default value instead of failing the audit.
"""

import logging
import math
import re
from datetime import datetime, timezone
from typing import Callable, TypeVar
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from pydantic import BaseModel, Field

from prospectflow.schemas import AuditIssue, AuditResult

logger = logging.getLogger("prospectflow.page_analysis")

T = TypeVar("T")

# ─── Constants ─────────────────────────────────────────────────────────
HTML_SCAN_LIMIT = 50_000
MAX_STYLESHEETS = 5
H1_MAX_CHARS = 100
OVERFLOW_TOLERANCE_PX = 10
TABLE_LAYOUT_MIN_CELLS = 6
MIN_DESIGN_YEAR = 2000

# Ordered: first match wins
CMS_PATTERNS: list[tuple[str, list[str]]] = [
    ("WordPress", ["wp-content", "wp-includes", "wp-json", "/wordpress/"]),
    ("Wix", ["wixstatic.com", "parastorage.com", "wix.com/dpages", "X-Wix-"]),
    ("Squarespace", ["static.squarespace.com", "squarespace.com/s/"]),
    ("Jimdo", ["jimdofree.com", "jimdosite.com", "jimdocdn.com", "cdn.jimdostatic.com"]),
    ("Webflow", ["webflow.com", "webflow.io", ".webflow."]),
    ("Shopify", ["cdn.shopify.com", "myshopify.com", "Shopify.theme"]),
    ("Prestashop", ["prestashop", "presta-shop"]),
    ("Joomla", ["/joomla", "Joomla!", "com_content"]),
    ("Drupal", ["sites/all/modules", "/drupal", "Drupal.settings"]),
    ("Google Sites", ["sites.google.com", "googleusercontent.com/sites"]),
    ("Over-blog", ["over-blog.com", "overblog.com"]),
    ("e-monsite", ["e-monsite.com"]),
    ("Webnode", ["webnode.fr", "webnode.com"]),
]

BASIC_BUILDER_CMS = {"Wix", "Jimdo", "Webnode", "e-monsite"}

COPYRIGHT_RE = re.compile(r"©\s*(\d{4})|copyright\s+(\d{4})", re.IGNORECASE)
DATE_PUBLISHED_RE = re.compile(r'"datePublished"\s*:\s*"(\d{4})')

LEGAL_TEXT_MARKERS = ("mentions légales", "mentions legales", "legal notice")
LEGAL_HREF_MARKERS = ("mentions", "legal")

FLASH_MIME = "application/x-shockwave-flash"

# (upper bound exclusive, score)
PERFORMANCE_STAIRCASE = [(1, 95), (2, 85), (3, 70), (5, 50), (8, 30), (12, 15)]
PERFORMANCE_FLOOR = 5

SEO_WEIGHTS = {
    "has_title": 25,
    "has_meta_description": 20,
    "has_h1": 15,
    "has_open_graph": 15,
    "has_sitemap": 10,
    "has_robots_txt": 10,
    "has_canonical": 5,
}


# ═══════════════════════════════════════════════════════════════════════
# Snapshot types (what crosses the browser boundary)
# ═══════════════════════════════════════════════════════════════════════

class MobileLayout(BaseModel):
    """Layout measurement taken in the mobile viewport."""

    scroll_width: int
    viewport_width: int

    @property
    def overflows(self) -> bool:
        return self.scroll_width > self.viewport_width + OVERFLOW_TOLERANCE_PX


class PageSnapshot(BaseModel):
    """Raw material for one audit: captured HTML plus out-of-page probes."""

    url: str
    navigation_ok: bool = False
    load_time_sec: float = 0.0
    html: str | None = None
    mobile: MobileLayout | None = None
    has_robots_txt: bool = False
    has_sitemap: bool = False
    screenshot_desktop: str | None = None
    screenshot_mobile: str | None = None


class PageSignals(BaseModel):
    title: str = ""
    meta_description: str = ""
    has_meta_description: bool = False
    has_h1: bool = False
    h1_text: str = ""
    has_viewport_meta: bool = False
    has_open_graph: bool = False
    has_canonical: bool = False
    images_without_alt: int = 0
    has_legal_notice: bool = False
    has_flash: bool = False
    has_table_layout: bool = False
    stylesheets: list[str] = Field(default_factory=list)
    html: str = ""
    html_length: int = 0


# ═══════════════════════════════════════════════════════════════════════
# Signal extraction
# ═══════════════════════════════════════════════════════════════════════

def normalize_url(url: str) -> str:
    """Default schemeless input to https. Raises ValueError on unusable input."""
    candidate = (url or "").strip()
    if not candidate:
        raise ValueError("URL must not be empty")
    if not re.match(r"^https?://", candidate, re.IGNORECASE):
        if "://" in candidate:
            raise ValueError(f"Unsupported URL scheme: {candidate}")
        candidate = f"https://{candidate}"
    parsed = urlparse(candidate)
    host = parsed.hostname or ""
    if not host or " " in parsed.netloc or ("." not in host.strip(".") and host != "localhost"):
        raise ValueError(f"Malformed URL: {url}")
    return candidate


def round_half_up(value: float, digits: int = 0):
    """Half-up rounding: 0.25 → 0.3, 2.5 → 3."""
    factor = 10 ** digits
    rounded = math.floor(value * factor + 0.5)
    return rounded if digits == 0 else rounded / factor


def _guarded(step: str, fn: Callable[[], T], default: T) -> T:
    try:
        return fn()
    except Exception as e:
        logger.debug("Extraction step %s failed: %s", step, e)
        return default


def _meta_content(soup: BeautifulSoup, **attrs) -> str | None:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    return (tag.get("content") or "").strip()


def _images_without_alt(soup: BeautifulSoup) -> int:
    return sum(1 for img in soup.find_all("img") if not (img.get("alt") or "").strip())


def _has_legal_notice(soup: BeautifulSoup) -> bool:
    for a in soup.find_all("a"):
        text = a.get_text(" ", strip=True).lower()
        href = (a.get("href") or "").lower()
        if any(m in text for m in LEGAL_TEXT_MARKERS) or any(m in href for m in LEGAL_HREF_MARKERS):
            return True
    return False


def _has_flash(soup: BeautifulSoup) -> bool:
    return any(
        (el.get("type") or "").lower() == FLASH_MIME for el in soup.find_all(["object", "embed"])
    )


def _in_content_container(tag) -> bool:
    if "card" in (tag.get("class") or []):
        return True
    for parent in tag.parents:
        if parent.name in ("article", "form"):
            return True
        if "card" in (parent.get("class") or []):
            return True
    return False


def _has_table_layout(soup: BeautifulSoup) -> bool:
    for table in soup.find_all("table"):
        if table.get("role"):
            continue
        if len(table.find_all("td")) <= TABLE_LAYOUT_MIN_CELLS:
            continue
        if _in_content_container(table):
            continue
        return True
    return False


def _stylesheets(soup: BeautifulSoup, base_url: str) -> list[str]:
    hrefs = []
    for link in soup.find_all("link", rel="stylesheet"):
        href = (link.get("href") or "").strip()
        if href:
            hrefs.append(urljoin(base_url, href))
        if len(hrefs) >= MAX_STYLESHEETS:
            break
    return hrefs


def _title(soup: BeautifulSoup) -> str:
    if soup.title is None:
        return ""
    return " ".join(soup.title.get_text().split())


def _h1_text(soup: BeautifulSoup) -> str:
    h1 = soup.find("h1")
    return h1.get_text(" ", strip=True)[:H1_MAX_CHARS] if h1 else ""


def extract_page_signals(html: str, base_url: str) -> PageSignals:
    """Parse rendered HTML into page-level signals."""
    if not html:
        return PageSignals()

    soup = BeautifulSoup(html, "lxml")
    meta_description = _guarded("meta_description", lambda: _meta_content(soup, name="description"), None)

    return PageSignals(
        title=_guarded("title", lambda: _title(soup), ""),
        meta_description=meta_description or "",
        has_meta_description=bool(meta_description),
        has_h1=_guarded("h1", lambda: soup.find("h1") is not None, False),
        h1_text=_guarded("h1_text", lambda: _h1_text(soup), ""),
        has_viewport_meta=_guarded(
            "viewport", lambda: soup.find("meta", attrs={"name": "viewport"}) is not None, False
        ),
        has_open_graph=_guarded(
            "open_graph", lambda: soup.find("meta", attrs={"property": "og:title"}) is not None, False
        ),
        has_canonical=_guarded(
            "canonical", lambda: soup.find("link", rel="canonical") is not None, False
        ),
        images_without_alt=_guarded("images", lambda: _images_without_alt(soup), 0),
        has_legal_notice=_guarded("legal_notice", lambda: _has_legal_notice(soup), False),
        has_flash=_guarded("flash", lambda: _has_flash(soup), False),
        has_table_layout=_guarded("table_layout", lambda: _has_table_layout(soup), False),
        stylesheets=_guarded("stylesheets", lambda: _stylesheets(soup, base_url), []),
        html=html[:HTML_SCAN_LIMIT],
        html_length=len(html),
    )


# ═══════════════════════════════════════════════════════════════════════
# Fingerprinting
# ═══════════════════════════════════════════════════════════════════════

def detect_cms(html: str, url: str) -> str | None:
    combined = f"{html} {url}"
    for name, markers in CMS_PATTERNS:
        if any(marker in combined for marker in markers):
            return name
    return None


def detect_tech_stack(signals: PageSignals, cms: str | None) -> list[str]:
    stack = []
    if cms:
        stack.append(cms)
    if signals.has_flash:
        stack.append("Flash")
    if signals.has_table_layout:
        stack.append("Tables-layout")
    if "jQuery" in signals.html:
        stack.append("jQuery")
    if "bootstrap" in signals.html:
        stack.append("Bootstrap")
    return list(dict.fromkeys(stack))


def estimate_design_age(html: str, current_year: int | None = None) -> int | None:
    """Year the design most likely dates from, or None. Never guesses."""
    current_year = current_year or datetime.now(timezone.utc).year

    match = COPYRIGHT_RE.search(html)
    if match:
        year = int(match.group(1) or match.group(2))
        if MIN_DESIGN_YEAR <= year <= current_year:
            return year

    match = DATE_PUBLISHED_RE.search(html)
    if match:
        year = int(match.group(1))
        if MIN_DESIGN_YEAR <= year <= current_year:
            return year
    return None


# ═══════════════════════════════════════════════════════════════════════
# Sub-scores
# ═══════════════════════════════════════════════════════════════════════

def calc_seo_score(**checks: bool) -> int:
    score = sum(weight for name, weight in SEO_WEIGHTS.items() if checks.get(name))
    return min(100, score)


def calc_mobile_score(has_viewport_meta: bool, is_responsive: bool) -> int:
    return (50 if has_viewport_meta else 0) + (50 if is_responsive else 0)


def calc_performance_score(load_time_sec: float) -> int:
    for upper, score in PERFORMANCE_STAIRCASE:
        if load_time_sec < upper:
            return score
    return PERFORMANCE_FLOOR


# ═══════════════════════════════════════════════════════════════════════
# Issues
# ═══════════════════════════════════════════════════════════════════════

def build_issues(
    *,
    has_ssl: bool,
    load_time_sec: float,
    is_responsive: bool,
    has_viewport_meta: bool,
    has_title: bool,
    has_meta_description: bool,
    has_h1: bool,
    has_open_graph: bool,
    has_sitemap: bool,
    has_robots_txt: bool,
    has_legal_notice: bool,
    images_without_alt: int,
    cms: str | None,
    design_age: int | None,
    tech_stack: list[str],
) -> list[AuditIssue]:
    """One issue per failed check, in a fixed order."""
    issues: list[AuditIssue] = []

    # ── Security ──
    if not has_ssl:
        issues.append(AuditIssue(
            label="Site served over HTTP: no SSL certificate",
            severity="high",
            category="security",
            description='Visitors see a "Not secure" warning in their browser.',
            recommendation="Install an SSL certificate (free with Let's Encrypt).",
        ))

    # ── Performance ──
    if load_time_sec > 8:
        issues.append(AuditIssue(
            label=f"Very slow loading: {load_time_sec:.1f}s",
            severity="high",
            category="performance",
            description="Past 3 seconds, over half of mobile visitors leave.",
            recommendation="Optimize images, enable caching and use a CDN.",
        ))
    elif load_time_sec > 5:
        issues.append(AuditIssue(
            label=f"Slow loading: {load_time_sec:.1f}s",
            severity="medium",
            category="performance",
            description="Load time above the recommended 3 seconds.",
            recommendation="Compress images and minify CSS/JS.",
        ))
    elif load_time_sec > 3:
        issues.append(AuditIssue(
            label=f"Loading could be faster: {load_time_sec:.1f}s",
            severity="low",
            category="performance",
            recommendation="Enable gzip compression and optimize images.",
        ))

    # ── Mobile ──
    if not has_viewport_meta:
        issues.append(AuditIssue(
            label="Missing viewport tag: not responsive",
            severity="high",
            category="mobile",
            description="Without a viewport tag the site renders poorly on phones.",
            recommendation='Add <meta name="viewport" content="width=device-width, initial-scale=1">.',
        ))
    elif not is_responsive:
        issues.append(AuditIssue(
            label="Site not responsive: poor mobile experience",
            severity="high",
            category="mobile",
            description="Most traffic is mobile; a site that does not adapt loses customers.",
            recommendation="Rework the CSS mobile-first or adopt a responsive framework.",
        ))

    # ── SEO ──
    if not has_title:
        issues.append(AuditIssue(
            label="Missing <title> tag",
            severity="high",
            category="seo",
            description="The title drives both ranking and how the result looks in search.",
            recommendation="Add a <title> naming the business and its location.",
        ))
    if not has_meta_description:
        issues.append(AuditIssue(
            label="Missing meta description",
            severity="medium",
            category="seo",
            description="Search engines fall back to an auto-generated, unappealing snippet.",
            recommendation="Write a 150-160 character description with keywords and a call to action.",
        ))
    if not has_h1:
        issues.append(AuditIssue(
            label="No visible H1 heading",
            severity="medium",
            category="seo",
            recommendation="Add an H1 that clearly states what the business does.",
        ))
    if not has_open_graph:
        issues.append(AuditIssue(
            label="Missing Open Graph tags",
            severity="low",
            category="seo",
            description="Social shares show no attractive preview.",
            recommendation="Add og:title, og:description and og:image.",
        ))
    if not has_sitemap:
        issues.append(AuditIssue(
            label="XML sitemap not found",
            severity="low",
            category="seo",
            recommendation="Create a sitemap.xml and submit it to Search Console.",
        ))
    if not has_robots_txt:
        issues.append(AuditIssue(
            label="Missing robots.txt",
            severity="low",
            category="seo",
            recommendation="Add a robots.txt file at the site root.",
        ))

    # ── Legal ──
    if not has_legal_notice:
        issues.append(AuditIssue(
            label="Legal notice (mentions légales) not found",
            severity="medium",
            category="legal",
            description="Mandatory in France for any professional website.",
            recommendation="Publish a legal notice page with company name, address, SIRET and host.",
        ))

    # ── Accessibility ──
    if images_without_alt > 3:
        issues.append(AuditIssue(
            label=f"{images_without_alt} images without alt attribute",
            severity="low",
            category="seo",
            description="Images without alt text are ignored by search engines and screen readers.",
            recommendation="Add meaningful alt text to every image.",
        ))

    # ── Design / tech ──
    if "Flash" in tech_stack:
        issues.append(AuditIssue(
            label="Flash content detected: obsolete",
            severity="high",
            category="design",
            description="No modern browser has run Flash since 2020.",
            recommendation="Replace with HTML5/CSS3/JavaScript.",
        ))
    if "Tables-layout" in tech_stack:
        issues.append(AuditIssue(
            label="Page laid out with HTML tables",
            severity="high",
            category="design",
            description="Table layouts signal a site more than fifteen years old.",
            recommendation="Rebuild the layout with CSS Flexbox/Grid.",
        ))
    if design_age and design_age < 2016:
        issues.append(AuditIssue(
            label=f"Design dates from around {design_age}: very dated",
            severity="high",
            category="design",
            recommendation="A full redesign is recommended.",
        ))
    elif design_age and design_age < 2019:
        issues.append(AuditIssue(
            label=f"Design dates from around {design_age}: dated",
            severity="medium",
            category="design",
            recommendation="A design refresh is recommended.",
        ))
    if cms in BASIC_BUILDER_CMS:
        issues.append(AuditIssue(
            label=f"Built with {cms}: basic site builder",
            severity="medium",
            category="design",
            description=f"{cms} limits customization and SEO tuning.",
            recommendation="Move to a professional stack.",
        ))

    return issues


# ═══════════════════════════════════════════════════════════════════════
# Assembly
# ═══════════════════════════════════════════════════════════════════════

def build_audit_result(
    snapshot: PageSnapshot,
    scanned_at: str | None = None,
    current_year: int | None = None,
) -> AuditResult:
    """Derive the complete AuditResult from one snapshot."""
    scanned_at = scanned_at or datetime.now(timezone.utc).isoformat()
    has_ssl = snapshot.url.lower().startswith("https://")

    signals = (
        extract_page_signals(snapshot.html, snapshot.url)
        if snapshot.navigation_ok and snapshot.html
        else PageSignals()
    )

    # A viewport tag is necessary but not sufficient
    if snapshot.mobile is not None:
        is_responsive = signals.has_viewport_meta and not snapshot.mobile.overflows
    else:
        is_responsive = signals.has_viewport_meta

    cms = _guarded("cms", lambda: detect_cms(signals.html, snapshot.url), None)
    tech_stack = detect_tech_stack(signals, cms)
    design_age = _guarded("design_age", lambda: estimate_design_age(signals.html, current_year), None)

    has_title = bool(signals.title)
    checks = {
        "has_title": has_title,
        "has_meta_description": signals.has_meta_description,
        "has_h1": signals.has_h1,
        "has_open_graph": signals.has_open_graph,
        "has_sitemap": snapshot.has_sitemap,
        "has_robots_txt": snapshot.has_robots_txt,
        "has_canonical": signals.has_canonical,
    }

    issues = build_issues(
        has_ssl=has_ssl,
        load_time_sec=snapshot.load_time_sec,
        is_responsive=is_responsive,
        has_viewport_meta=signals.has_viewport_meta,
        has_title=has_title,
        has_meta_description=signals.has_meta_description,
        has_h1=signals.has_h1,
        has_open_graph=signals.has_open_graph,
        has_sitemap=snapshot.has_sitemap,
        has_robots_txt=snapshot.has_robots_txt,
        has_legal_notice=signals.has_legal_notice,
        images_without_alt=signals.images_without_alt,
        cms=cms,
        design_age=design_age,
        tech_stack=tech_stack,
    )

    return AuditResult(
        url=snapshot.url,
        scanned_at=scanned_at,
        mobile_score=calc_mobile_score(signals.has_viewport_meta, is_responsive),
        seo_score=calc_seo_score(**checks),
        performance_score=calc_performance_score(snapshot.load_time_sec),
        load_time_sec=round_half_up(snapshot.load_time_sec, 1),
        page_size=round_half_up(signals.html_length / 1024),
        has_ssl=has_ssl,
        is_responsive=is_responsive,
        has_viewport_meta=signals.has_viewport_meta,
        title=signals.title or None,
        meta_description=signals.meta_description or None,
        h1_text=signals.h1_text or None,
        has_legal_notice=signals.has_legal_notice,
        cms=cms,
        tech_stack=tech_stack,
        design_age=design_age,
        images_without_alt=signals.images_without_alt,
        stylesheets=signals.stylesheets,
        issues=issues,
        screenshot_desktop=snapshot.screenshot_desktop,
        screenshot_mobile=snapshot.screenshot_mobile,
        **checks,
    )
