"""FastAPI dependency helpers."""

from functools import lru_cache

from fastapi import Depends

from lichess_fetcher.services.fetcher import GameFetcher
from lichess_fetcher.services.script_catalog import ScriptCatalog


@lru_cache(maxsize=1)
def get_fetcher() -> GameFetcher:
    """Return the process-wide fetcher.

    The fetcher holds no per-request state; every call to
    :meth:`GameFetcher.fetch` launches and releases its own browser.

    Returns:
        GameFetcher: Shared fetcher using the Playwright renderer.
    """
    return GameFetcher()


def get_catalog(fetcher: GameFetcher = Depends(get_fetcher)) -> ScriptCatalog:
    """Return the script catalog used by the fetcher."""
    return fetcher.catalog
