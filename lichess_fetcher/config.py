"""Application configuration loader."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]


CONFIG_ENV_VAR = "APP_CONFIG_FILE"
CONFIG_PATH = Path(__file__).resolve().parents[1] / "config.toml"

WAIT_UNTIL_OPTIONS = {"load", "domcontentloaded", "networkidle", "commit"}

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
DEFAULT_LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--no-first-run",
    "--no-zygote",
    "--single-process",
]
DEFAULT_CUSTOM_SELECTORS = [
    "[data-lichess-tools]",
    "[data-extension]",
    '[class*="extension"]',
    '[class*="tool"]',
    '[class*="enhanced"]',
    '[id*="extension"]',
    '[id*="tool"]',
]


class Config:
    """Application configuration loaded from TOML files.

    Every section is optional; missing keys fall back to the defaults the
    service was designed around. A handful of operational values can be
    overridden through environment variables.
    """

    def __init__(self, data: Dict[str, Any]) -> None:
        """Initialise configuration values from parsed TOML data.

        Args:
            data: Nested dictionary representation of the TOML file.
        """
        site = data.get("site", {})
        navigation = data.get("navigation", {})
        browser = data.get("browser", {})
        extraction = data.get("extraction", {})
        logging_settings = data.get("logging", {})

        self.SITE_ORIGIN: str = os.getenv("SITE_ORIGIN", site.get("origin", "https://lichess.org")).rstrip("/")
        self.USER_AGENT: str = site.get("user_agent", DEFAULT_USER_AGENT)

        self.NAVIGATION_TIMEOUT_MS: int = int(os.getenv("NAVIGATION_TIMEOUT_MS", navigation.get("timeout_ms", 30000)))
        wait_until_candidate = str(navigation.get("wait_until", "networkidle")).strip().lower() or "networkidle"
        if wait_until_candidate not in WAIT_UNTIL_OPTIONS:
            wait_until_candidate = "networkidle"
        self.NAVIGATION_WAIT_UNTIL: str = wait_until_candidate
        self.BASIC_WAIT_MS: int = int(navigation.get("basic_wait_ms", 3000))
        self.ADVANCED_WAIT_MS: int = int(navigation.get("advanced_wait_ms", 5000))
        self.MAX_WAIT_MS: int = int(navigation.get("max_wait_ms", 60000))

        self.BROWSER_HEADLESS: bool = self._parse_bool(os.getenv("BROWSER_HEADLESS", browser.get("headless", True)))
        self.BROWSER_LAUNCH_ARGS: List[str] = [str(arg) for arg in browser.get("launch_args", DEFAULT_LAUNCH_ARGS)]
        self.PLAYWRIGHT_BROWSERS_PATH: str = browser.get("browsers_path", "/ms-playwright")

        self.GLOBAL_KEYWORDS: List[str] = [
            str(item) for item in extraction.get("global_keywords", ["lichess", "extension", "chess", "tool", "plugin"])
        ]
        self.GLOBAL_PREFIXES: List[str] = [str(item) for item in extraction.get("global_prefixes", ["__", "_"])]
        self.STORAGE_KEYWORDS: List[str] = [
            str(item) for item in extraction.get("storage_keywords", ["lichess", "chess", "extension"])
        ]
        self.CUSTOM_SELECTORS: List[str] = [
            str(item) for item in extraction.get("custom_selectors", DEFAULT_CUSTOM_SELECTORS)
        ]
        self.TEXT_CAP: int = int(extraction.get("text_cap", 500))
        self.FUNCTION_SOURCE_CAP: int = int(extraction.get("function_source_cap", 200))
        self.STRUCTURED_PAYLOAD_ID: str = extraction.get("structured_payload_id", "page-init-data")
        self.MOVE_SELECTOR: str = extraction.get("move_selector", ".moves move, move")
        self.PLAYER_SELECTOR: str = extraction.get("player_selector", ".ruser, .player")
        self.EVALUATION_SELECTOR: str = extraction.get("evaluation_selector", "[data-eval], .eval, .evaluation")
        self.MOVE_COUNT_SELECTOR: str = extraction.get("move_count_selector", ".rmoves move")

        self.LOG_LEVEL: str = str(os.getenv("LOG_LEVEL", logging_settings.get("level", "INFO"))).upper()

    @staticmethod
    def _parse_bool(value: Any) -> bool:
        """Parse a boolean-like value.

        Args:
            value: Any truthy/falsy representation.

        Returns:
            bool: Parsed boolean, defaulting to False only for explicit false-like values.
        """
        if isinstance(value, bool):
            return value
        if value is None:
            return False
        str_value = str(value).strip().lower()
        return str_value not in {"0", "false", "no", "off"}


def load_config(path: Path | str | None = None) -> Config:
    """Load the application configuration from a TOML file.

    Args:
        path: Optional path to the configuration file. When omitted, the
            function checks the `APP_CONFIG_FILE` environment variable and
            finally falls back to `config.toml`.

    Returns:
        Config: A configuration object populated with the parsed values.

    Raises:
        FileNotFoundError: If the configuration file cannot be located.
        tomllib.TOMLDecodeError: If the TOML content is malformed.
    """
    config_path = _resolve_config_path(path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found at {config_path}")

    with config_path.open("rb") as f:
        data = tomllib.load(f)

    return Config(data)


def _resolve_config_path(path: Path | str | None) -> Path:
    """Resolve the path to the configuration file.

    Args:
        path: Explicit path provided by the caller.

    Returns:
        Path: The resolved configuration path, prioritizing the argument, then
        the `APP_CONFIG_FILE` environment variable, and lastly the default
        location.
    """
    if path:
        return Path(path)

    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)

    return CONFIG_PATH


config = load_config()
