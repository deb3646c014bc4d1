"""Shared fixtures: a scriptable fake renderer and sample game markup."""

from typing import Any, Callable, Dict, List, Optional

import pytest

from lichess_fetcher.config import config
from lichess_fetcher.errors import RendererError
from lichess_fetcher.services.assembler import SNAPSHOT_SCRIPT
from lichess_fetcher.services.fetcher import GameFetcher
from lichess_fetcher.services.probes import ExtractionSettings, PageSnapshot
from lichess_fetcher.services.script_catalog import default_catalog

GAME_HTML = """
<html>
<head>
  <title>Alice vs Bob</title>
  <script id="page-init-data" type="application/json">{"game":{"id":"abc","winner":"white"}}</script>
  <script>[1, 2, 3]</script>
  <script>var boot = {"ignored": true};</script>
  <script>{not json at all</script>
  <script src="/assets/site.js"></script>
</head>
<body>
  <div class="ruser ruser-top">Alice 1500</div>
  <div class="player black">Bob 1480</div>
  <div class="moves"><move>e4</move><move>e5</move></div>
  <div class="rmoves"><move>Nf3</move></div>
  <div data-eval="0.3">+0.3</div>
  <span class="eval">-0.1</span>
  <div class="lichess-tools-panel" data-lichess-tools="1">Panel</div>
</body>
</html>
"""


class FakeRenderer:
    """In-memory stand-in for the Playwright renderer that records every call."""

    def __init__(
        self,
        html: str = GAME_HTML,
        window: Optional[Dict[str, Any]] = None,
        storage: Optional[Dict[str, str]] = None,
        inject_effects: Optional[Dict[str, Dict[str, Any]]] = None,
        goto_error: Optional[Exception] = None,
        inject_error: Optional[Exception] = None,
        evaluate_error: Optional[Exception] = None,
        close_error: Optional[Exception] = None,
    ) -> None:
        self.html = html
        self.window = dict(window or {})
        self.storage = storage
        self.inject_effects = inject_effects or {}
        self.goto_error = goto_error
        self.inject_error = inject_error
        self.evaluate_error = evaluate_error
        self.close_error = close_error
        self.calls: List[str] = []
        self.visited: List[str] = []
        self.injected: List[str] = []
        self.waits: List[int] = []
        self.close_calls = 0

    def goto(self, url: str, *, wait_until: str, timeout_ms: int) -> Optional[int]:
        self.calls.append("goto")
        self.visited.append(url)
        if self.goto_error is not None:
            raise self.goto_error
        return 200

    def evaluate(self, expression: str, arg: Any = None) -> Any:
        self.calls.append("evaluate")
        if self.evaluate_error is not None:
            raise self.evaluate_error
        assert expression == SNAPSHOT_SCRIPT
        globals_payload = {}
        for name, value in self.window.items():
            if callable(value):
                globals_payload[name] = {"kind": "function", "source": f"function {name}() {{}}"}
            else:
                globals_payload[name] = {"kind": "value", "value": value}
        return {
            "html": self.html,
            "title": "Alice vs Bob",
            "url": "https://lichess.org/abc",
            "globals": globals_payload,
            "storage": self.storage,
        }

    def inject(self, source: str) -> None:
        self.calls.append("inject")
        self.injected.append(source)
        if self.inject_error is not None:
            raise self.inject_error
        self.window.update(self.inject_effects.get(source, {}))

    def wait(self, duration_ms: int) -> None:
        self.calls.append("wait")
        self.waits.append(duration_ms)

    def close(self) -> None:
        self.calls.append("close")
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class RecordingFactory:
    """Renderer factory that counts acquisitions."""

    def __init__(self, renderer: Optional[FakeRenderer] = None, error: Optional[Exception] = None) -> None:
        self.renderer = renderer or FakeRenderer()
        self.error = error
        self.acquired = 0

    def __call__(self) -> FakeRenderer:
        self.acquired += 1
        if self.error is not None:
            raise self.error
        return self.renderer


@pytest.fixture
def settings() -> ExtractionSettings:
    return ExtractionSettings.from_config(config)


@pytest.fixture
def snapshot() -> PageSnapshot:
    return PageSnapshot(
        html=GAME_HTML,
        title="Alice vs Bob",
        url="https://lichess.org/abc",
        globals={"__test": {"kind": "value", "value": {"marker": True}}},
        storage={"lichess.setting": '{"a": 1}', "unrelated": "x"},
    )


@pytest.fixture
def make_fetcher() -> Callable[..., GameFetcher]:
    def factory(renderer_factory: Callable[[], Any]) -> GameFetcher:
        return GameFetcher(renderer_factory=renderer_factory, catalog=default_catalog())

    return factory


@pytest.fixture
def renderer_error() -> RendererError:
    return RendererError("browser crashed")
