"""Tests for the script template catalog."""

import pytest

from lichess_fetcher.errors import ValidationError
from lichess_fetcher.services.script_catalog import ScriptCatalog, ScriptTemplate, default_catalog


def test_default_catalog_lists_builtin_templates():
    catalog = default_catalog()

    assert catalog.names() == ["simple", "accuracy", "analysis", "opening", "all"]
    assert "__customLichessData" in catalog.get("simple").source
    assert "__lichessAccuracy" in catalog.get("accuracy").source
    assert "__lichessMoveAnalysis" in catalog.get("analysis").source
    assert "__lichessOpeningTracker" in catalog.get("opening").source


def test_composite_runs_members_in_order():
    catalog = default_catalog()
    source = catalog.get("all").source

    markers = ("__customLichessData", "__lichessAccuracy", "__lichessMoveAnalysis", "__lichessOpeningTracker")
    positions = [source.index(marker) for marker in markers]
    assert positions == sorted(positions)


def test_lookup_is_case_insensitive():
    catalog = default_catalog()
    assert catalog.get("  Simple ").name == "simple"
    assert "SIMPLE" in catalog


def test_unknown_template_raises_validation_error():
    with pytest.raises(ValidationError, match="Unknown script template 'nope'"):
        default_catalog().get("nope")


def test_register_rejects_blank_values():
    catalog = ScriptCatalog()
    with pytest.raises(ValueError):
        catalog.register("", "window.x = 1;")
    with pytest.raises(ValueError):
        catalog.register("empty", "   ")


def test_register_replaces_existing_template():
    catalog = ScriptCatalog([ScriptTemplate("marker", "window.__marker = 1;", "first")])
    catalog.register("marker", "window.__marker = 2;", "second")

    assert len(catalog) == 1
    assert catalog.describe() == [{"name": "marker", "description": "second"}]
