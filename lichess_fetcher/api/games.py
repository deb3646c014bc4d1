"""Game fetch endpoints."""

import json
import logging
from typing import Any, Callable, Dict, Tuple

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, Response
from starlette.concurrency import run_in_threadpool

from lichess_fetcher.dependencies import get_catalog, get_fetcher
from lichess_fetcher.schemas import ScriptTemplateInfo, ScriptTemplatesResponse
from lichess_fetcher.services.fetcher import ADVANCED, BASIC, GameFetcher, merge_params
from lichess_fetcher.services.script_catalog import ScriptCatalog

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Games"])

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Methods": "GET, POST",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Max-Age": "3600",
}


async def _request_params(request: Request) -> Dict[str, Any]:
    """Collect parameters from the query string and, for POST, the JSON body."""
    body: Any = None
    if request.method == "POST":
        raw = await request.body()
        if raw:
            try:
                body = json.loads(raw)
            except ValueError:
                logger.debug("Ignoring non-JSON request body")
    return merge_params(request.query_params, body)


async def _dispatch(
    request: Request,
    handler: Callable[[Dict[str, Any]], Tuple[int, Dict[str, Any]]],
) -> JSONResponse:
    params = await _request_params(request)
    status_code, body = await run_in_threadpool(handler, params)
    return JSONResponse(status_code=status_code, content=body)


def _preflight() -> Response:
    return Response(status_code=status.HTTP_204_NO_CONTENT, headers=PREFLIGHT_HEADERS)


@router.api_route("/fetchLichessGame", methods=["GET", "POST"])
async def fetch_game(request: Request, fetcher: GameFetcher = Depends(get_fetcher)):
    """Fetch a game page and return every extracted fragment.

    Args:
        request: Incoming request carrying ``gameId`` in the query or JSON body.
        fetcher: Shared fetcher injected by FastAPI.

    Returns:
        JSONResponse: Success envelope (200), usage hint (400) or error (500).
    """
    return await _dispatch(request, lambda params: fetcher.handle(params, BASIC))


@router.api_route("/fetchLichessGameAdvanced", methods=["GET", "POST"])
async def fetch_game_advanced(request: Request, fetcher: GameFetcher = Depends(get_fetcher)):
    """Fetch a game page after injecting a template and/or caller script.

    Accepts ``customScript``, ``scriptTemplate`` and ``waitTime`` in addition
    to ``gameId``. Error bodies include a ``stack`` field.
    """
    return await _dispatch(request, lambda params: fetcher.handle(params, ADVANCED))


@router.api_route("/fetchLichessGameOrganized", methods=["GET", "POST"])
async def fetch_game_organized(request: Request, fetcher: GameFetcher = Depends(get_fetcher)):
    """Fetch like the advanced endpoint and return organizer views instead of raw fragments."""
    return await _dispatch(request, fetcher.handle_organized)


@router.options("/fetchLichessGame")
@router.options("/fetchLichessGameAdvanced")
@router.options("/fetchLichessGameOrganized")
def preflight():
    """Answer CORS preflight requests."""
    return _preflight()


@router.get("/scripts", response_model=ScriptTemplatesResponse)
def list_scripts(catalog: ScriptCatalog = Depends(get_catalog)):
    """Return the injectable script templates."""
    return ScriptTemplatesResponse(templates=[ScriptTemplateInfo(**item) for item in catalog.describe()])
