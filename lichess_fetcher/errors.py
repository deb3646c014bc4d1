"""Exceptions raised while fetching and extracting a game page."""

from __future__ import annotations

from typing import Optional


class FetchError(RuntimeError):
    """Base class for failures surfaced to the HTTP caller."""

    status_code = 500


class ValidationError(FetchError):
    """Raised when request parameters are missing or malformed."""

    status_code = 400


class RendererError(FetchError):
    """Raised when the browser cannot be launched or navigation fails."""


class NavigationTimeoutError(RendererError):
    """Raised when navigation does not settle within the configured bound."""

    def __init__(self, url: str, timeout_ms: int, original_error: Optional[str] = None) -> None:
        """Compose a message that names the URL and the exceeded timeout."""
        message = f"Navigation timeout of {timeout_ms}ms exceeded while loading {url}"
        if original_error:
            message = f"{message}: {original_error}"
        super().__init__(message)
        self.url = url
        self.timeout_ms = timeout_ms
        self.original_error = original_error


class InjectedScriptError(FetchError):
    """Raised when a caller-supplied script fails inside the page."""

    def __init__(self, original_error: str) -> None:
        """Wrap the page-side failure message."""
        super().__init__(f"Injected script failed: {original_error}")
        self.original_error = original_error
