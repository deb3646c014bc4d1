"""Headless browser used to render a single game page per request."""

from __future__ import annotations

import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from lichess_fetcher.config import Config, config
from lichess_fetcher.errors import NavigationTimeoutError, RendererError

logger = logging.getLogger(__name__)

# Runs caller-supplied source in global scope and discards its completion value.
INJECT_SCRIPT = """(source) => {
    (0, eval)(source);
    return true;
}"""


class PageRenderer(Protocol):
    """Capabilities the fetcher needs from a rendered page."""

    def goto(self, url: str, *, wait_until: str, timeout_ms: int) -> Optional[int]: ...

    def evaluate(self, expression: str, arg: Any = None) -> Any: ...

    def inject(self, source: str) -> None: ...

    def wait(self, duration_ms: int) -> None: ...

    def close(self) -> None: ...


RendererFactory = Callable[[], PageRenderer]


class PlaywrightRenderer:
    """One Chromium process, context and page owned by a single request."""

    _install_attempted = False

    def __init__(self, cfg: Config = config) -> None:
        """Prepare launch settings; the browser starts in :meth:`launch`."""
        self._config = cfg
        self._playwright = None
        self._browser = None
        self._context = None
        self._page = None
        browsers_path = os.environ.setdefault("PLAYWRIGHT_BROWSERS_PATH", cfg.PLAYWRIGHT_BROWSERS_PATH)
        try:
            Path(browsers_path).mkdir(parents=True, exist_ok=True)
        except OSError:  # pragma: no cover - best effort
            logger.debug("Failed to ensure PLAYWRIGHT_BROWSERS_PATH exists", exc_info=True)

    @classmethod
    def launch(cls, cfg: Config = config) -> "PlaywrightRenderer":
        """Start Playwright and open a blank page with the configured user agent.

        Raises:
            RendererError: If the browser cannot be started.
        """
        renderer = cls(cfg)
        try:
            renderer._start()
        except Exception as exc:
            renderer.close()
            if isinstance(exc, RendererError):
                raise
            raise RendererError(f"Failed to launch browser: {exc}") from exc
        return renderer

    def _start(self) -> None:
        logger.info("Starting Playwright headless browser instance")
        self._playwright = sync_playwright().start()
        try:
            self._browser = self._launch_chromium()
        except PlaywrightError as exc:
            if self._maybe_install_browsers(exc):
                self._browser = self._launch_chromium()
            else:
                raise
        self._context = self._browser.new_context(user_agent=self._config.USER_AGENT, bypass_csp=True)
        self._context.set_default_timeout(self._config.NAVIGATION_TIMEOUT_MS)
        self._context.set_default_navigation_timeout(self._config.NAVIGATION_TIMEOUT_MS)
        self._page = self._context.new_page()

    def _launch_chromium(self) -> Any:
        return self._playwright.chromium.launch(
            headless=self._config.BROWSER_HEADLESS,
            args=list(self._config.BROWSER_LAUNCH_ARGS),
        )

    @classmethod
    def _maybe_install_browsers(cls, exc: PlaywrightError) -> bool:
        message = str(exc)
        if cls._install_attempted:
            return False
        if "playwright install" not in message.lower():
            return False
        logger.info("Playwright browser executable missing; attempting automatic install...")
        cls._install_attempted = True
        try:
            subprocess.run(
                [sys.executable, "-m", "playwright", "install", "chromium", "--with-deps"],
                check=True,
                capture_output=True,
                text=True,
            )
            logger.info("Playwright Chromium browser installed successfully.")
            return True
        except (OSError, subprocess.CalledProcessError):
            logger.exception("Automatic Playwright browser install failed")
            return False

    def goto(self, url: str, *, wait_until: str, timeout_ms: int) -> Optional[int]:
        """Navigate and wait for the readiness condition.

        Returns:
            Optional[int]: HTTP status of the main document, when known.

        Raises:
            NavigationTimeoutError: If the page does not settle within ``timeout_ms``.
            RendererError: On any other navigation failure.
        """
        try:
            response = self._page.goto(url, wait_until=wait_until, timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationTimeoutError(url, timeout_ms, str(exc).splitlines()[0] if str(exc) else None) from exc
        except PlaywrightError as exc:
            raise RendererError(f"Navigation to {url} failed: {exc}") from exc
        return response.status if response else None

    def evaluate(self, expression: str, arg: Any = None) -> Any:
        try:
            return self._page.evaluate(expression, arg)
        except PlaywrightError as exc:
            raise RendererError(f"Page evaluation failed: {exc}") from exc

    def inject(self, source: str) -> None:
        """Execute ``source`` in the page's global scope; errors propagate as :class:`RendererError`."""
        self.evaluate(INJECT_SCRIPT, source)

    def wait(self, duration_ms: int) -> None:
        if duration_ms > 0:
            self._page.wait_for_timeout(duration_ms)

    def close(self) -> None:
        """Release the page, context, browser and Playwright runtime."""
        if self._context is not None:
            try:
                self._context.close()
            except Exception:  # pragma: no cover - best effort cleanup
                logger.debug("Failed to close Playwright context", exc_info=True)
            finally:
                self._context = None
                self._page = None
        if self._browser is not None:
            try:
                self._browser.close()
            except Exception:  # pragma: no cover - best effort cleanup
                logger.warning("Failed to close Playwright browser", exc_info=True)
            finally:
                self._browser = None
        if self._playwright is not None:
            try:
                self._playwright.stop()
            except Exception:  # pragma: no cover - best effort cleanup
                logger.debug("Failed to stop Playwright runtime", exc_info=True)
            finally:
                self._playwright = None


def launch_renderer() -> PageRenderer:
    """Default factory used by the fetcher."""
    return PlaywrightRenderer.launch(config)
