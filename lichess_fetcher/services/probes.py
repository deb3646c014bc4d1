"""Best-effort extraction probes run against a captured page snapshot."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from bs4 import BeautifulSoup
from bs4.element import CData, NavigableString, Script, Stylesheet, TemplateString

from lichess_fetcher.config import Config

logger = logging.getLogger(__name__)

SELECTOR_KEY_STRIP = str.maketrans("", "", "[]\"'*")
# Strings counted by DOM textContent: script and style bodies included, comments not.
TEXT_CONTENT_TYPES = (NavigableString, CData, Script, Stylesheet, TemplateString)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def try_parse_json(text: Any, default: Any = None) -> Any:
    """Return the JSON value encoded in ``text`` or ``default`` when it is not JSON.

    ``NaN`` and ``Infinity`` are rejected the way a browser's ``JSON.parse`` rejects them.
    """
    if not isinstance(text, (str, bytes, bytearray)):
        return default
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except (TypeError, ValueError):
        return default


def is_json_serialisable(value: Any) -> bool:
    """Return whether ``value`` survives a JSON round-trip without coercion."""
    try:
        json.dumps(value, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError):
        return False
    return True


def selector_key(selector: str) -> str:
    """Derive the envelope key used for a custom selector (``[class*="tool"]`` -> ``class=tool``)."""
    return selector.translate(SELECTOR_KEY_STRIP)


@dataclass(frozen=True)
class KeywordMatcher:
    """Name filter matching case-insensitive substrings or case-sensitive prefixes."""

    keywords: Sequence[str] = ()
    prefixes: Sequence[str] = ()

    def matches(self, name: str) -> bool:
        lowered = name.lower()
        if any(keyword.lower() in lowered for keyword in self.keywords):
            return True
        return any(name.startswith(prefix) for prefix in self.prefixes if prefix)

    def as_js_arg(self) -> Dict[str, List[str]]:
        """Serialise the matcher for the in-page snapshot script."""
        return {
            "keywords": [keyword.lower() for keyword in self.keywords],
            "prefixes": [prefix for prefix in self.prefixes if prefix],
        }


@dataclass(frozen=True)
class ExtractionSettings:
    """Selectors, matchers and caps shared by every probe."""

    structured_payload_id: str = "page-init-data"
    global_matcher: KeywordMatcher = field(default_factory=KeywordMatcher)
    storage_matcher: KeywordMatcher = field(default_factory=KeywordMatcher)
    custom_selectors: Sequence[str] = ()
    move_selector: str = ".moves move, move"
    player_selector: str = ".ruser, .player"
    evaluation_selector: str = "[data-eval], .eval, .evaluation"
    move_count_selector: str = ".rmoves move"
    text_cap: int = 500
    function_source_cap: int = 200

    @classmethod
    def from_config(cls, cfg: Config) -> "ExtractionSettings":
        return cls(
            structured_payload_id=cfg.STRUCTURED_PAYLOAD_ID,
            global_matcher=KeywordMatcher(tuple(cfg.GLOBAL_KEYWORDS), tuple(cfg.GLOBAL_PREFIXES)),
            storage_matcher=KeywordMatcher(tuple(cfg.STORAGE_KEYWORDS)),
            custom_selectors=tuple(cfg.CUSTOM_SELECTORS),
            move_selector=cfg.MOVE_SELECTOR,
            player_selector=cfg.PLAYER_SELECTOR,
            evaluation_selector=cfg.EVALUATION_SELECTOR,
            move_count_selector=cfg.MOVE_COUNT_SELECTOR,
            text_cap=cfg.TEXT_CAP,
            function_source_cap=cfg.FUNCTION_SOURCE_CAP,
        )


@dataclass(frozen=True)
class PageSnapshot:
    """Everything captured from the page in its single evaluation call.

    Attributes:
        html: Serialised ``document.documentElement.outerHTML`` after rendering.
        title: ``document.title``.
        url: ``window.location.href``.
        globals: Matching global bindings as reported by the page. Each entry
            is ``{"kind": "value", "value": ...}``, ``{"kind": "function",
            "source": ...}`` or ``{"kind": "error", "error": ...}``.
        storage: ``localStorage`` contents, or ``None`` when the page denied
            access to it.
    """

    html: str = ""
    title: str = ""
    url: str = ""
    globals: Mapping[str, Any] = field(default_factory=dict)
    storage: Optional[Mapping[str, Any]] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "PageSnapshot":
        """Build a snapshot from the raw value returned by the page."""
        if not isinstance(payload, dict):
            return cls()
        globals_value = payload.get("globals")
        storage_value = payload.get("storage")
        return cls(
            html=payload.get("html") if isinstance(payload.get("html"), str) else "",
            title=payload.get("title") if isinstance(payload.get("title"), str) else "",
            url=payload.get("url") if isinstance(payload.get("url"), str) else "",
            globals=globals_value if isinstance(globals_value, dict) else {},
            storage=storage_value if isinstance(storage_value, dict) else None,
        )

    @cached_property
    def document(self) -> BeautifulSoup:
        return BeautifulSoup(self.html, "html.parser")


# ==================== Probes ====================


def structured_payload(snapshot: PageSnapshot, settings: ExtractionSettings) -> Any:
    """Parse the site's serialised initial-state script element."""
    element = snapshot.document.find(id=settings.structured_payload_id)
    if element is None:
        return None
    payload = try_parse_json(_script_text(element).strip())
    if payload is None:
        logger.debug("Structured payload #%s is not valid JSON", settings.structured_payload_id)
    return payload


def global_scan(snapshot: PageSnapshot, settings: ExtractionSettings) -> Dict[str, Any]:
    """Collect global bindings whose names match the configured keywords."""
    found: Dict[str, Any] = {}
    for name, entry in snapshot.globals.items():
        if not settings.global_matcher.matches(name):
            continue
        try:
            kind = entry.get("kind")
            if kind == "function":
                found[name] = str(entry.get("source", ""))[: settings.function_source_cap]
            elif kind == "value":
                value = entry.get("value")
                if value is not None and is_json_serialisable(value):
                    found[name] = value
            else:
                logger.debug("Skipping global %s: %s", name, entry.get("error", "unreadable"))
        except Exception:
            logger.debug("Skipping malformed global entry %s", name, exc_info=True)
    return found


def document_metadata(snapshot: PageSnapshot, settings: ExtractionSettings) -> Dict[str, Any]:
    return {"title": snapshot.title, "url": snapshot.url}


def move_list(snapshot: PageSnapshot, settings: ExtractionSettings) -> Optional[List[str]]:
    """Return move tokens in document order."""
    elements = snapshot.document.select(settings.move_selector)
    if not elements:
        return None
    return [element.get_text().strip() for element in elements]


def players(snapshot: PageSnapshot, settings: ExtractionSettings) -> Optional[List[Dict[str, str]]]:
    elements = snapshot.document.select(settings.player_selector)
    if not elements:
        return None
    return [{"text": element.get_text().strip(), "classes": _class_name(element)} for element in elements]


def analysis_markers(snapshot: PageSnapshot, settings: ExtractionSettings) -> Optional[List[Dict[str, Any]]]:
    """Return ``{eval, text}`` for every element carrying evaluation markup."""
    elements = snapshot.document.select(settings.evaluation_selector)
    if not elements:
        return None
    return [{"eval": element.get("data-eval"), "text": element.get_text().strip()} for element in elements]


def custom_selectors(snapshot: PageSnapshot, settings: ExtractionSettings) -> Dict[str, List[Dict[str, Any]]]:
    """Describe elements matched by extension-pattern selectors.

    A selector that fails to compile or query is skipped without affecting the
    others. Text content is capped at ``settings.text_cap`` characters.
    """
    found: Dict[str, List[Dict[str, Any]]] = {}
    for selector in settings.custom_selectors:
        try:
            elements = snapshot.document.select(selector)
        except Exception:
            logger.debug("Skipping custom selector %r", selector, exc_info=True)
            continue
        if not elements:
            continue
        found[selector_key(selector)] = [
            {
                "tag": (element.name or "").upper(),
                "id": element.get("id") or "",
                "classes": _class_name(element),
                "attributes": [
                    {"name": name, "value": " ".join(value) if isinstance(value, list) else str(value)}
                    for name, value in element.attrs.items()
                ],
                "text": element.get_text(types=TEXT_CONTENT_TYPES)[: settings.text_cap],
            }
            for element in elements
        ]
    return found


def persisted_storage(snapshot: PageSnapshot, settings: ExtractionSettings) -> Optional[Dict[str, Any]]:
    """Return keyword-matching storage entries, JSON-decoded where possible."""
    if snapshot.storage is None:
        return None
    found: Dict[str, Any] = {}
    for key, raw in snapshot.storage.items():
        if settings.storage_matcher.matches(key):
            found[key] = try_parse_json(raw, default=raw)
    return found


def move_count(snapshot: PageSnapshot, settings: ExtractionSettings) -> Optional[int]:
    count = len(snapshot.document.select(settings.move_count_selector))
    return count or None


def inline_json_scripts(snapshot: PageSnapshot, settings: ExtractionSettings) -> Optional[List[Any]]:
    """Parse every inline script whose body looks like a JSON document."""
    parsed: List[Any] = []
    for script in snapshot.document.select("script:not([src])"):
        content = _script_text(script).strip()
        if not content.startswith(("{", "[")):
            continue
        value = try_parse_json(content)
        if value is not None:
            parsed.append(value)
    return parsed or None


def _script_text(element: Any) -> str:
    if element.string is not None:
        return str(element.string)
    return element.get_text()


def _class_name(element: Any) -> str:
    classes = element.get("class") or []
    if isinstance(classes, str):
        return classes
    return " ".join(classes)


# ==================== Registry ====================

ProbeFunc = Callable[[PageSnapshot, ExtractionSettings], Any]


@dataclass(frozen=True)
class ExtractionProbe:
    """A named probe and the envelope slot its fragment fills.

    With ``key=None`` the fragment fills ``section`` itself; a mapping is merged
    into a section that already holds one.
    """

    name: str
    section: str
    key: Optional[str]
    func: ProbeFunc

    def run(self, snapshot: PageSnapshot, settings: ExtractionSettings) -> Any:
        """Run the probe, converting any internal fault into an absent fragment."""
        try:
            return self.func(snapshot, settings)
        except Exception:
            logger.debug("Probe %s failed", self.name, exc_info=True)
            return None


DEFAULT_PROBES: List[ExtractionProbe] = [
    ExtractionProbe("structured_payload", "pageInitData", None, structured_payload),
    ExtractionProbe("global_scan", "extensionData", None, global_scan),
    ExtractionProbe("document_metadata", "dom", None, document_metadata),
    ExtractionProbe("move_list", "dom", "moves", move_list),
    ExtractionProbe("players", "dom", "players", players),
    ExtractionProbe("analysis_markers", "dom", "evaluations", analysis_markers),
    ExtractionProbe("custom_selectors", "dom", None, custom_selectors),
    ExtractionProbe("persisted_storage", "localStorage", None, persisted_storage),
    ExtractionProbe("move_count", "computedData", "moveCount", move_count),
    ExtractionProbe("inline_json_scripts", "computedData", "jsonScripts", inline_json_scripts),
]
