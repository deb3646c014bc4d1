"""Catalog of named page scripts that mimic what browser extensions compute."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from lichess_fetcher.errors import ValidationError

SCRIPTS_DIR = Path(__file__).resolve().parents[1] / "scripts"

BUILTIN_TEMPLATES = (
    ("simple", "simple.js", "Collect move text and data-eval markers into window.__customLichessData."),
    ("accuracy", "accuracy.js", "Approximate per-side accuracy into window.__lichessAccuracy."),
    ("analysis", "analysis.js", "Classify moves by evaluation swing into window.__lichessMoveAnalysis."),
    ("opening", "opening.js", "Record the opening and first ten moves into window.__lichessOpeningTracker."),
)


@dataclass(frozen=True)
class ScriptTemplate:
    """A named JavaScript snippet executed in the page before extraction."""

    name: str
    source: str
    description: str = ""


class ScriptCatalog:
    """Registry of script templates looked up by name."""

    def __init__(self, templates: Optional[Sequence[ScriptTemplate]] = None) -> None:
        self._templates: Dict[str, ScriptTemplate] = {}
        for template in templates or ():
            self.register(template.name, template.source, template.description)

    def register(self, name: str, source: str, description: str = "") -> ScriptTemplate:
        """Add or replace a template.

        Raises:
            ValueError: If ``name`` or ``source`` is blank.
        """
        key = name.strip().lower()
        if not key:
            raise ValueError("Script template name must not be empty.")
        if not source.strip():
            raise ValueError(f"Script template '{key}' has no source.")
        template = ScriptTemplate(key, source, description)
        self._templates[key] = template
        return template

    def register_composite(self, name: str, members: Sequence[str], description: str = "") -> ScriptTemplate:
        """Register a template that runs ``members`` one after another."""
        sources = [self.get(member).source.rstrip() for member in members]
        return self.register(name, "\n".join(sources) + "\n", description)

    def get(self, name: str) -> ScriptTemplate:
        """Return the template registered under ``name``.

        Raises:
            ValidationError: If no such template exists.
        """
        key = str(name or "").strip().lower()
        template = self._templates.get(key)
        if template is None:
            available = ", ".join(self.names()) or "none"
            raise ValidationError(f"Unknown script template '{name}'. Available templates: {available}")
        return template

    def names(self) -> List[str]:
        return list(self._templates)

    def describe(self) -> List[Dict[str, str]]:
        return [{"name": template.name, "description": template.description} for template in self._templates.values()]

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self._templates

    def __len__(self) -> int:
        return len(self._templates)


def load_builtin_source(filename: str) -> str:
    return (SCRIPTS_DIR / filename).read_text(encoding="utf-8")


def default_catalog() -> ScriptCatalog:
    """Build the catalog shipped with the service, including the composite ``all``."""
    catalog = ScriptCatalog()
    for name, filename, description in BUILTIN_TEMPLATES:
        catalog.register(name, load_builtin_source(filename), description)
    catalog.register_composite(
        "all",
        [name for name, _, _ in BUILTIN_TEMPLATES],
        "Run every built-in template in sequence.",
    )
    return catalog
