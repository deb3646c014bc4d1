"""Tests for the Playwright renderer's error mapping and teardown."""

from unittest.mock import Mock

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from lichess_fetcher.config import config
from lichess_fetcher.errors import NavigationTimeoutError, RendererError
from lichess_fetcher.services.renderer import INJECT_SCRIPT, PlaywrightRenderer


@pytest.fixture
def renderer(monkeypatch, tmp_path):
    monkeypatch.setenv("PLAYWRIGHT_BROWSERS_PATH", str(tmp_path))
    instance = PlaywrightRenderer(config)
    instance._page = Mock()
    return instance


def test_goto_returns_status(renderer):
    renderer._page.goto.return_value = Mock(status=200)

    assert renderer.goto("https://lichess.org/abc", wait_until="networkidle", timeout_ms=30000) == 200
    renderer._page.goto.assert_called_once_with("https://lichess.org/abc", wait_until="networkidle", timeout=30000)


def test_goto_timeout_is_translated(renderer):
    renderer._page.goto.side_effect = PlaywrightTimeoutError("Timeout 30000ms exceeded.")

    with pytest.raises(NavigationTimeoutError) as excinfo:
        renderer.goto("https://lichess.org/abc", wait_until="networkidle", timeout_ms=30000)

    assert "30000ms" in str(excinfo.value)
    assert excinfo.value.url == "https://lichess.org/abc"


def test_goto_transport_error_is_translated(renderer):
    renderer._page.goto.side_effect = PlaywrightError("net::ERR_NAME_NOT_RESOLVED")

    with pytest.raises(RendererError, match="ERR_NAME_NOT_RESOLVED"):
        renderer.goto("https://lichess.org/abc", wait_until="load", timeout_ms=1000)


def test_inject_evaluates_source_in_global_scope(renderer):
    renderer.inject("window.__x = 1;")
    renderer._page.evaluate.assert_called_once_with(INJECT_SCRIPT, "window.__x = 1;")


def test_inject_errors_surface_as_renderer_error(renderer):
    renderer._page.evaluate.side_effect = PlaywrightError("SyntaxError: Unexpected end of input")

    with pytest.raises(RendererError) as excinfo:
        renderer.inject("window.__x = ")

    assert isinstance(excinfo.value.__cause__, PlaywrightError)


def test_wait_skips_non_positive_durations(renderer):
    renderer.wait(0)
    renderer.wait(250)
    renderer._page.wait_for_timeout.assert_called_once_with(250)


def test_close_releases_everything_and_tolerates_failures(renderer):
    context = Mock()
    context.close.side_effect = RuntimeError("context gone")
    browser = Mock()
    playwright = Mock()
    renderer._context, renderer._browser, renderer._playwright = context, browser, playwright

    renderer.close()
    renderer.close()

    context.close.assert_called_once()
    browser.close.assert_called_once()
    playwright.stop.assert_called_once()
