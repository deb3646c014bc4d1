"""Request lifecycle: validate, render, inject, settle, extract, release."""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple
from urllib.parse import quote

from pydantic import ValidationError as PydanticValidationError

from lichess_fetcher.config import Config, config
from lichess_fetcher.errors import (
    FetchError,
    InjectedScriptError,
    NavigationTimeoutError,
    RendererError,
    ValidationError,
)
from lichess_fetcher.schemas import (
    FetchErrorResponse,
    FetchSuccessResponse,
    GameDataEnvelope,
    GameRequest,
    OrganizedGameResponse,
    ValidationErrorResponse,
)
from lichess_fetcher.services.assembler import ResultAssembler
from lichess_fetcher.services.organizer import organize
from lichess_fetcher.services.probes import ExtractionSettings
from lichess_fetcher.services.renderer import PageRenderer, RendererFactory, launch_renderer
from lichess_fetcher.services.script_catalog import ScriptCatalog, default_catalog
from lichess_fetcher.utils.helpers import first_present, get_timestamp, parse_positive_int

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchVariant:
    """Per-endpoint behaviour of the shared request handler."""

    name: str
    default_wait_ms: int
    allow_injection: bool = False
    include_stack: bool = False


BASIC = FetchVariant("basic", config.BASIC_WAIT_MS)
ADVANCED = FetchVariant("advanced", config.ADVANCED_WAIT_MS, allow_injection=True, include_stack=True)


class GameFetcher:
    """Own one renderer per request and turn the outcome into a response body."""

    def __init__(
        self,
        renderer_factory: RendererFactory = launch_renderer,
        assembler: Optional[ResultAssembler] = None,
        catalog: Optional[ScriptCatalog] = None,
        cfg: Config = config,
    ) -> None:
        self._renderer_factory = renderer_factory
        self._config = cfg
        self.assembler = assembler or ResultAssembler(ExtractionSettings.from_config(cfg))
        self.catalog = catalog if catalog is not None else default_catalog()

    # ==================== Validation ====================

    def parse_request(self, params: Mapping[str, Any], variant: FetchVariant) -> GameRequest:
        """Validate raw query/body parameters.

        Args:
            params: Merged request parameters (query string first, then body).
            variant: Endpoint behaviour deciding which parameters are accepted.

        Returns:
            GameRequest: The validated request.

        Raises:
            ValidationError: When ``gameId`` is missing or another parameter is malformed.
        """
        game_id = params.get("gameId")
        if isinstance(game_id, int) and not isinstance(game_id, bool):
            game_id = str(game_id)
        if game_id is not None and not isinstance(game_id, str):
            raise ValidationError("gameId must be a string")
        if not game_id or not game_id.strip():
            raise ValidationError("Missing gameId parameter")

        custom_script = params.get("customScript")
        script_template = params.get("scriptTemplate")
        if custom_script is not None and not isinstance(custom_script, str):
            raise ValidationError("customScript must be a string")
        if script_template is not None and not isinstance(script_template, str):
            raise ValidationError("scriptTemplate must be a string")
        custom_script = custom_script if custom_script and custom_script.strip() else None
        script_template = script_template.strip() if script_template and script_template.strip() else None

        if not variant.allow_injection and (custom_script or script_template):
            raise ValidationError(f"Script injection is not supported by the {variant.name} endpoint")
        if script_template:
            self.catalog.get(script_template)

        wait_time_ms = variant.default_wait_ms
        raw_wait = params.get("waitTime")
        if variant.allow_injection and raw_wait is not None and raw_wait != "":
            parsed = parse_positive_int(raw_wait)
            if parsed is None:
                raise ValidationError("waitTime must be a positive integer number of milliseconds")
            wait_time_ms = min(parsed, self._config.MAX_WAIT_MS)

        try:
            return GameRequest(
                gameId=game_id.strip(),
                customScript=custom_script,
                scriptTemplate=script_template,
                waitTime=wait_time_ms,
            )
        except PydanticValidationError as exc:
            raise ValidationError(_first_error_message(exc)) from exc

    # ==================== Lifecycle ====================

    def game_url(self, game_id: str) -> str:
        return f"{self._config.SITE_ORIGIN}/{quote(game_id, safe='')}"

    def scripts_for(self, request: GameRequest) -> List[str]:
        """Return injection sources in execution order: template first, then the caller's script."""
        sources: List[str] = []
        if request.script_template:
            sources.append(self.catalog.get(request.script_template).source)
        if request.custom_script:
            sources.append(request.custom_script)
        return sources

    def fetch(self, request: GameRequest) -> Dict[str, Any]:
        """Render the game page and return the assembled envelope.

        The renderer is released on every exit path once acquired.

        Raises:
            RendererError: If launching or navigating fails.
            NavigationTimeoutError: If navigation does not settle in time.
            InjectedScriptError: If an injected script throws.
        """
        renderer = self._renderer_factory()
        try:
            url = self.game_url(request.game_id)
            logger.info("Fetching game: %s", url)
            status_code = renderer.goto(
                url,
                wait_until=self._config.NAVIGATION_WAIT_UNTIL,
                timeout_ms=self._config.NAVIGATION_TIMEOUT_MS,
            )
            logger.debug("Navigated to %s (status=%s)", url, status_code)

            for source in self.scripts_for(request):
                logger.info("Injecting custom script (%d chars)", len(source))
                try:
                    renderer.inject(source)
                except RendererError as exc:
                    raise InjectedScriptError(str(exc.__cause__ or exc)) from exc

            logger.info("Waiting %dms for content to settle", request.wait_time_ms)
            renderer.wait(request.wait_time_ms)
            return self.assembler.collect(renderer)
        finally:
            self._release(renderer)

    @staticmethod
    def _release(renderer: PageRenderer) -> None:
        try:
            renderer.close()
        except Exception:
            logger.warning("Failed to release renderer", exc_info=True)

    # ==================== Envelopes ====================

    def handle(self, params: Mapping[str, Any], variant: FetchVariant) -> Tuple[int, Dict[str, Any]]:
        """Run a full request and return ``(status_code, body)``."""

        def success(request: GameRequest, data: Dict[str, Any]) -> Dict[str, Any]:
            return FetchSuccessResponse(
                gameId=request.game_id,
                data=GameDataEnvelope(**data),
                timestamp=get_timestamp(),
            ).model_dump()

        return self._run(params, variant, success)

    def handle_organized(
        self, params: Mapping[str, Any], variant: FetchVariant = ADVANCED
    ) -> Tuple[int, Dict[str, Any]]:
        """Like :meth:`handle`, but reshape the envelope with the organizer."""

        def success(request: GameRequest, data: Dict[str, Any]) -> Dict[str, Any]:
            envelope = GameDataEnvelope(**data).model_dump()
            return OrganizedGameResponse(
                gameId=request.game_id,
                organized=organize(request.game_id, envelope),
                timestamp=get_timestamp(),
            ).model_dump()

        return self._run(params, variant, success)

    def _run(
        self,
        params: Mapping[str, Any],
        variant: FetchVariant,
        success: Callable[[GameRequest, Dict[str, Any]], Dict[str, Any]],
    ) -> Tuple[int, Dict[str, Any]]:
        try:
            request = self.parse_request(params, variant)
        except ValidationError as exc:
            return exc.status_code, ValidationErrorResponse(error=str(exc)).model_dump()

        try:
            data = self.fetch(request)
            return 200, success(request, data)
        except (NavigationTimeoutError, InjectedScriptError) as exc:
            logger.warning("Error fetching game %s: %s", request.game_id, exc)
            return self._failure(exc, request.game_id, variant)
        except Exception as exc:
            logger.exception("Error fetching game %s", request.game_id)
            return self._failure(exc, request.game_id, variant)

    @staticmethod
    def _failure(exc: Exception, game_id: Optional[str], variant: FetchVariant) -> Tuple[int, Dict[str, Any]]:
        status_code = exc.status_code if isinstance(exc, FetchError) else 500
        stack = None
        if variant.include_stack:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
        body = FetchErrorResponse(error=str(exc) or exc.__class__.__name__, gameId=game_id, stack=stack)
        return status_code, body.model_dump(exclude_none=True)


def merge_params(query: Mapping[str, Any], body: Any) -> Dict[str, Any]:
    """Merge query-string and JSON-body parameters, preferring the query string."""
    body_params = body if isinstance(body, Mapping) else {}
    keys = set(query) | set(body_params)
    return {key: first_present(query.get(key), body_params.get(key)) for key in keys}


def _first_error_message(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request parameters"
    first = errors[0]
    field_name = ".".join(str(part) for part in first.get("loc", ())) or "request"
    return f"{field_name}: {first.get('msg', 'invalid value')}"
