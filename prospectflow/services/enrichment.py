"""
Enrichment Worker — backfill rating, review count, phone, site and address
from public map listings via headless Chromium.

Anti-detection strategy:
  - one browser + one context reused for the whole batch
  - uniformly random 2–4 s pause between targets (never after the last)
  - images, fonts and media blocked; realistic desktop user-agent

Every target yields exactly one EnrichmentResult; a failed lookup yields an
all-null result carrying only its source URL. The browser evaluates a tiny
raw-string extraction; all parsing happens in the functions below.
"""

import asyncio
import logging
import random
import re
from contextlib import AsyncExitStack
from typing import Awaitable, Callable, Optional
from urllib.parse import parse_qs, quote, urlparse

from playwright.async_api import async_playwright
from pydantic import BaseModel, Field

from prospectflow.config import settings
from prospectflow.schemas import EnrichmentResult, EnrichmentTarget

logger = logging.getLogger("prospectflow.enrichment")

# ─── Constants ─────────────────────────────────────────────────────────
DELAY_RANGE = (2.0, 4.0)  # seconds between targets
NAV_TIMEOUT_MS = 15000
SETTLE_MS = 2000
CONSENT_SETTLE_MS = 1000
RESULTS_TIMEOUT_MS = 8000

BROWSER_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-features=VizDisplayCompositor",
]
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36"
)
CONTEXT_OPTIONS = {
    "user_agent": USER_AGENT,
    "locale": "fr-FR",
    "timezone_id": "Europe/Paris",
    "viewport": {"width": 1280, "height": 800},
    "geolocation": {"latitude": 48.8566, "longitude": 2.3522},
    "permissions": ["geolocation"],
}
BLOCKED_ROUTES = "**/*.{png,jpg,jpeg,gif,svg,ico,woff,woff2,ttf,mp4,webm}"

CONSENT_SELECTOR = (
    'button:has-text("Tout accepter"), button:has-text("Accept all"), '
    'button[aria-label="Accept all"]'
)
RESULTS_SELECTOR = '[data-value], [aria-label*="étoile"], [aria-label*="star"], .fontBodyMedium'

LISTING_JS = """() => {
    const attr = (el, name) => (el ? el.getAttribute(name) : null);
    const ratingEl = document.querySelector('[aria-label*="étoile"], [aria-label*="star"], [data-value]');
    const reviewEls = document.querySelectorAll('[aria-label*="avis"], [aria-label*="review"]');
    const telEl = document.querySelector('a[href^="tel:"]');
    const webEl = document.querySelector(
        'a[data-tooltip="Ouvrir le site Web"], a[aria-label*="site"], a[data-item-id="authority"]'
    );
    const addrEl = document.querySelector(
        '[data-item-id="address"] .fontBodyMedium, [aria-label*="Adresse"] .fontBodyMedium'
    );
    return {
        rating_label: attr(ratingEl, 'aria-label') || attr(ratingEl, 'data-value'),
        review_labels: Array.from(reviewEls).map(el => el.getAttribute('aria-label') || ''),
        tel_href: attr(telEl, 'href'),
        website_href: attr(webEl, 'href'),
        address_text: addrEl ? addrEl.textContent : null,
    };
}"""

RATING_RE = re.compile(r"(\d+[,.]?\d*)")
REVIEW_COUNT_RE = re.compile(r"(\d[\d\s]*)")

ProgressCallback = Callable[[int, int], Optional[Awaitable[None]]]


class MapsListing(BaseModel):
    """Raw strings read from a listing page."""

    rating_label: str | None = None
    review_labels: list[str] = Field(default_factory=list)
    tel_href: str | None = None
    website_href: str | None = None
    address_text: str | None = None


# ═══════════════════════════════════════════════════════════════════════
# Parsing
# ═══════════════════════════════════════════════════════════════════════

def build_search_url(name: str, city: str) -> str:
    return f"{settings.maps_search_url.rstrip('/')}/{quote(f'{name} {city}', safe='')}"


def parse_rating(label: str | None) -> float | None:
    """'4,5 étoiles' → 4.5"""
    if not label:
        return None
    m = RATING_RE.search(label)
    if not m:
        return None
    try:
        return float(m.group(1).replace(",", "."))
    except ValueError:
        return None


def parse_review_count(labels: list[str]) -> int | None:
    """First label carrying a number wins: '1 234 avis' → 1234"""
    for label in labels:
        m = REVIEW_COUNT_RE.search(label or "")
        if m:
            return int(re.sub(r"\s", "", m.group(1)))
    return None


def parse_phone(href: str | None) -> str | None:
    if not href:
        return None
    return href.replace("tel:", "", 1).strip() or None


def unwrap_redirect(href: str | None) -> str | None:
    """Unwrap ``google.com/url?q=<target>`` redirect wrappers."""
    if not href:
        return None
    if "google.com/url" not in href:
        return href
    target = parse_qs(urlparse(href).query).get("q")
    return target[0] if target else href


def parse_listing(listing: MapsListing, source_url: str) -> EnrichmentResult:
    address = (listing.address_text or "").strip() or None
    return EnrichmentResult(
        google_rating=parse_rating(listing.rating_label),
        google_review_count=parse_review_count(listing.review_labels),
        website=unwrap_redirect(listing.website_href),
        phone=parse_phone(listing.tel_href),
        address=address,
        is_open=None,
        source_url=source_url,
    )


# ═══════════════════════════════════════════════════════════════════════
# Browser side
# ═══════════════════════════════════════════════════════════════════════

async def _dismiss_consent(page) -> None:
    button = page.locator(CONSENT_SELECTOR).first
    try:
        visible = await button.is_visible()
    except Exception:
        visible = False
    if visible:
        await button.click()
        await page.wait_for_timeout(CONSENT_SETTLE_MS)


async def enrich_one(page, target: EnrichmentTarget) -> EnrichmentResult:
    """Look up one business. Never raises: failures become an all-null result."""
    source_url = build_search_url(target.name, target.city)
    try:
        await page.goto(source_url, wait_until="domcontentloaded", timeout=NAV_TIMEOUT_MS)
        await page.wait_for_timeout(SETTLE_MS)
        await _dismiss_consent(page)
        try:
            await page.wait_for_selector(RESULTS_SELECTOR, timeout=RESULTS_TIMEOUT_MS)
        except Exception:
            pass  # listing may still carry partial data

        listing = MapsListing(**await page.evaluate(LISTING_JS))
        return parse_listing(listing, source_url)
    except Exception as e:
        logger.info("Enrichment failed for %r (%s): %s", target.name, target.city, e)
        return EnrichmentResult(source_url=source_url)


async def _notify(on_progress: ProgressCallback | None, index: int, total: int) -> None:
    if on_progress is None:
        return
    result = on_progress(index, total)
    if asyncio.iscoroutine(result):
        await result


async def enrich_batch(
    targets: list[EnrichmentTarget],
    on_progress: ProgressCallback | None = None,
    *,
    rng: random.Random | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> list[EnrichmentResult]:
    """
    Enrich every target in order through one shared browser.

    Returns one result per target, index-aligned. ``on_progress(i, total)``
    fires after each item (1-based). ``rng`` and ``sleep`` drive the pacing
    and can be replaced for deterministic runs.
    """
    if not targets:
        return []

    rng = rng or random.Random()
    total = len(targets)
    results: list[EnrichmentResult] = []

    async with AsyncExitStack() as stack:
        page = None
        try:
            pw = await stack.enter_async_context(async_playwright())
            browser = await pw.chromium.launch(headless=True, args=BROWSER_ARGS)
            stack.push_async_callback(browser.close)
            context = await browser.new_context(**CONTEXT_OPTIONS)
            await context.route(BLOCKED_ROUTES, lambda route: route.abort())
            page = await context.new_page()
        except Exception as e:
            logger.error("Could not start browser for enrichment: %s", e)

        for i, target in enumerate(targets, start=1):
            if page is None:
                result = EnrichmentResult(source_url=build_search_url(target.name, target.city))
            else:
                result = await enrich_one(page, target)
            results.append(result)
            await _notify(on_progress, i, total)
            # No traffic reaches the listing service without a page
            if page is not None and i < total:
                await sleep(rng.uniform(*DELAY_RANGE))

    logger.info(
        "Enriched %d targets (%d with data)",
        total, sum(1 for r in results if r.google_rating is not None or r.phone or r.website),
    )
    return results
