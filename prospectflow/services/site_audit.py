"""
Site Audit Engine — live technical audit of one website via Playwright.

Loads the page in a desktop context (timed), re-loads it in a mobile
context to measure horizontal overflow, probes robots.txt / sitemap.xml,
then hands the captured snapshot to ``page_analysis`` for scoring.

Navigation failures are not fatal: a timed-out page still yields a large
load time and otherwise-empty signals. The only hard failure is the
browser not starting. The browser is always closed.
"""

import asyncio
import base64
import logging
import time
from urllib.parse import urlparse

import aiohttp
from playwright.async_api import async_playwright

from prospectflow.config import settings
from prospectflow.schemas import AuditResult
from prospectflow.services.page_analysis import (
    MobileLayout,
    PageSnapshot,
    build_audit_result,
    normalize_url,
)

logger = logging.getLogger("prospectflow.audit")

# ─── Constants ─────────────────────────────────────────────────────────
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage", "--disable-gpu"]

DESKTOP_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36 ProspectFlow/1.0"
)
DESKTOP_VIEWPORT = {"width": 1280, "height": 900}

MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.0 Mobile/15E148 Safari/604.1"
)
MOBILE_VIEWPORT = {"width": 375, "height": 812}
MOBILE_NAV_TIMEOUT_MS = 10000

LOCALE = "fr-FR"
PROBE_TIMEOUT = 5  # seconds
SCREENSHOT_QUALITY = 50

# Fonts/media add variance to load time; ads/analytics add noise
BLOCKED_DESKTOP_ROUTES = ["**/*.{woff,woff2,ttf,mp4,webm,mkv}", "**/{ads,analytics,tracking}**"]
BLOCKED_MOBILE_ROUTES = ["**/*.{woff,woff2,ttf,mp4,webm}"]

MOBILE_LAYOUT_JS = """() => ({
    scroll_width: document.body ? document.body.scrollWidth : 0,
    viewport_width: window.innerWidth,
})"""


async def _block_routes(context, patterns: list[str]) -> None:
    for pattern in patterns:
        await context.route(pattern, lambda route: route.abort())


async def _screenshot(page) -> str:
    raw = await page.screenshot(type="jpeg", quality=SCREENSHOT_QUALITY)
    return base64.b64encode(raw).decode("ascii")


async def _probe(session: aiohttp.ClientSession, url: str) -> bool:
    """HEAD a well-known file. Any failure counts as absent."""
    try:
        timeout = aiohttp.ClientTimeout(total=PROBE_TIMEOUT)
        async with session.head(url, timeout=timeout, allow_redirects=True) as resp:
            return 200 <= resp.status < 300
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        logger.debug("Probe %s failed: %s", url, e)
        return False


async def probe_well_known(url: str) -> tuple[bool, bool]:
    """Returns (has_robots_txt, has_sitemap)."""
    parsed = urlparse(url)
    origin = f"{parsed.scheme}://{parsed.netloc}"
    async with aiohttp.ClientSession(headers={"User-Agent": DESKTOP_USER_AGENT}) as session:
        robots, sitemap = await asyncio.gather(
            _probe(session, f"{origin}/robots.txt"),
            _probe(session, f"{origin}/sitemap.xml"),
        )
    return robots, sitemap


async def _capture_desktop(browser, url: str, screenshots: bool, timeout_ms: int) -> dict:
    context = await browser.new_context(
        user_agent=DESKTOP_USER_AGENT, viewport=DESKTOP_VIEWPORT, locale=LOCALE
    )
    try:
        await _block_routes(context, BLOCKED_DESKTOP_ROUTES)
        page = await context.new_page()

        start = time.monotonic()
        navigation_ok = False
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
            navigation_ok = True
        except Exception as e:
            logger.info("Desktop navigation failed for %s: %s", url, e)
        load_time_sec = time.monotonic() - start

        html = None
        screenshot = None
        if navigation_ok:
            try:
                html = await page.content()
            except Exception as e:
                logger.warning("Could not read page content for %s: %s", url, e)
            if screenshots:
                try:
                    screenshot = await _screenshot(page)
                except Exception as e:
                    logger.warning("Desktop screenshot failed for %s: %s", url, e)

        return {
            "navigation_ok": navigation_ok,
            "load_time_sec": load_time_sec,
            "html": html,
            "screenshot_desktop": screenshot,
        }
    finally:
        await context.close()


async def _capture_mobile(browser, url: str, screenshots: bool) -> dict:
    context = await browser.new_context(
        user_agent=MOBILE_USER_AGENT, viewport=MOBILE_VIEWPORT, is_mobile=True, locale=LOCALE
    )
    try:
        await _block_routes(context, BLOCKED_MOBILE_ROUTES)
        page = await context.new_page()
        try:
            await page.goto(url, wait_until="domcontentloaded", timeout=MOBILE_NAV_TIMEOUT_MS)
            layout = MobileLayout(**await page.evaluate(MOBILE_LAYOUT_JS))
            screenshot = await _screenshot(page) if screenshots else None
        except Exception as e:
            logger.info("Mobile check failed for %s: %s", url, e)
            return {"mobile": None, "screenshot_mobile": None}
        return {"mobile": layout, "screenshot_mobile": screenshot}
    finally:
        await context.close()


async def capture_snapshot(url: str, screenshots: bool = False, timeout_ms: int | None = None) -> PageSnapshot:
    """Drive the browser and collect everything the analysis needs."""
    timeout_ms = timeout_ms or settings.audit_nav_timeout_ms

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(headless=True, args=BROWSER_ARGS)
        try:
            desktop = await _capture_desktop(browser, url, screenshots, timeout_ms)
            mobile = await _capture_mobile(browser, url, screenshots)
        finally:
            await browser.close()

    has_robots_txt, has_sitemap = await probe_well_known(url)
    return PageSnapshot(
        url=url,
        has_robots_txt=has_robots_txt,
        has_sitemap=has_sitemap,
        **desktop,
        **mobile,
    )


async def audit_website(url: str, screenshots: bool = False, timeout_ms: int | None = None) -> AuditResult:
    """Audit one site. Schemeless input defaults to https."""
    target = normalize_url(url)
    logger.info("Auditing %s", target)

    snapshot = await capture_snapshot(target, screenshots=screenshots, timeout_ms=timeout_ms)
    result = build_audit_result(snapshot)

    logger.info(
        "Audit %s: load=%.1fs seo=%d mobile=%d issues=%d",
        target, result.load_time_sec, result.seo_score, result.mobile_score, len(result.issues),
    )
    return result
