"""
Tests for the browser-driven site audit (Playwright and robots/sitemap checks mocked).
"""

from unittest.mock import AsyncMock, patch

import pytest

from tests.conftest import MODERN_PAGE, fake_playwright


def _patches(factory, well_known=(True, True)):
    return (
        patch("prospectflow.services.site_audit.async_playwright", factory),
        patch(
            "prospectflow.services.site_audit.probe_well_known",
            new_callable=AsyncMock,
            return_value=well_known,
        ),
    )


class TestAuditWebsite:
    async def test_successful_audit(self):
        from prospectflow.services.site_audit import audit_website

        factory, browser, page = fake_playwright()
        page.content.return_value = MODERN_PAGE
        page.evaluate.return_value = {"scroll_width": 375, "viewport_width": 375}

        pw_patch, well_known_patch = _patches(factory)
        with pw_patch, well_known_patch:
            result = await audit_website("bellemeche.fr")

        assert result.url == "https://bellemeche.fr"
        assert result.has_ssl
        assert result.is_responsive
        assert result.seo_score == 100
        assert result.screenshot_desktop is None
        browser.close.assert_awaited_once()

        goto_kwargs = page.goto.call_args_list[0].kwargs
        assert goto_kwargs["wait_until"] == "domcontentloaded"

    async def test_screenshots_captured_as_base64(self):
        from prospectflow.services.site_audit import audit_website

        factory, _, page = fake_playwright()
        page.content.return_value = MODERN_PAGE
        page.evaluate.return_value = {"scroll_width": 375, "viewport_width": 375}

        pw_patch, well_known_patch = _patches(factory)
        with pw_patch, well_known_patch:
            result = await audit_website("https://bellemeche.fr", screenshots=True)

        # base64 of b"jpeg-bytes"
        assert result.screenshot_desktop == "anBlZy1ieXRlcw=="
        assert result.screenshot_mobile == "anBlZy1ieXRlcw=="

    async def test_navigation_failure_still_yields_result(self):
        from prospectflow.services.site_audit import audit_website

        factory, browser, page = fake_playwright()
        page.goto.side_effect = TimeoutError("Timeout 15000ms exceeded")

        pw_patch, well_known_patch = _patches(factory, well_known=(False, False))
        with pw_patch, well_known_patch:
            result = await audit_website("https://down.example.fr")

        assert result.has_title is False
        assert result.page_size == 0
        page.content.assert_not_called()
        browser.close.assert_awaited_once()

    async def test_overflowing_mobile_layout(self):
        from prospectflow.services.site_audit import audit_website

        factory, _, page = fake_playwright()
        page.content.return_value = MODERN_PAGE
        page.evaluate.return_value = {"scroll_width": 980, "viewport_width": 375}

        pw_patch, well_known_patch = _patches(factory)
        with pw_patch, well_known_patch:
            result = await audit_website("https://bellemeche.fr")

        assert result.is_responsive is False
        assert result.mobile_score == 50

    async def test_launch_failure_propagates(self):
        from prospectflow.services.site_audit import audit_website

        factory, _, _ = fake_playwright()
        pw = factory.return_value.__aenter__.return_value
        pw.chromium.launch.side_effect = RuntimeError("Executable doesn't exist")

        pw_patch, well_known_patch = _patches(factory)
        with pw_patch, well_known_patch:
            with pytest.raises(RuntimeError, match="Executable"):
                await audit_website("https://bellemeche.fr")

    async def test_malformed_url_rejected_before_browser(self):
        from prospectflow.services.site_audit import audit_website

        factory, _, _ = fake_playwright()
        pw_patch, well_known_patch = _patches(factory)
        with pw_patch, well_known_patch:
            with pytest.raises(ValueError):
                await audit_website("not a url")
        factory.assert_not_called()
