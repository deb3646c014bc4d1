"""Run every extraction probe over one page snapshot and merge the fragments."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from lichess_fetcher.services.probes import DEFAULT_PROBES, ExtractionProbe, ExtractionSettings, PageSnapshot
from lichess_fetcher.services.renderer import PageRenderer

logger = logging.getLogger(__name__)

ENVELOPE_KEYS = ("pageInitData", "extensionData", "dom", "localStorage", "computedData")

# Single evaluation boundary: everything the probes read is captured here.
SNAPSHOT_SCRIPT = """(params) => {
    const { keywords = [], prefixes = [], functionSourceCap = 200 } = params || {};
    const matches = (name) => {
        const lowered = name.toLowerCase();
        return keywords.some(keyword => lowered.includes(keyword))
            || prefixes.some(prefix => name.startsWith(prefix));
    };

    const globals = {};
    for (const name of Object.keys(window)) {
        if (!matches(name)) continue;
        try {
            const value = window[name];
            if (value === null || value === undefined) continue;
            if (typeof value === "function") {
                globals[name] = { kind: "function", source: String(value).slice(0, functionSourceCap) };
            } else if (typeof value === "object") {
                globals[name] = { kind: "value", value: JSON.parse(JSON.stringify(value)) };
            } else {
                globals[name] = { kind: "value", value };
            }
        } catch (error) {
            globals[name] = { kind: "error", error: String((error && error.message) || error) };
        }
    }

    let storage = null;
    try {
        const entries = {};
        for (let i = 0; i < window.localStorage.length; i++) {
            const key = window.localStorage.key(i);
            try {
                entries[key] = window.localStorage.getItem(key);
            } catch (error) {
                // unreadable entry
            }
        }
        storage = entries;
    } catch (error) {
        storage = null;
    }

    return {
        html: document.documentElement ? document.documentElement.outerHTML : "",
        title: document.title || "",
        url: window.location.href,
        globals,
        storage,
    };
}"""


def empty_envelope() -> Dict[str, Any]:
    """Return the envelope shape with every top-level key present."""
    return {
        "pageInitData": None,
        "extensionData": {},
        "dom": {},
        "localStorage": None,
        "computedData": {},
    }


class ResultAssembler:
    """Capture a page snapshot once and merge every probe's fragment into an envelope."""

    def __init__(
        self,
        settings: ExtractionSettings,
        probes: Optional[Sequence[ExtractionProbe]] = None,
    ) -> None:
        self.settings = settings
        self.probes = list(DEFAULT_PROBES if probes is None else probes)

    def capture(self, renderer: PageRenderer) -> PageSnapshot:
        """Evaluate the snapshot script in the page; the only call into the page context."""
        arg = dict(self.settings.global_matcher.as_js_arg())
        arg["functionSourceCap"] = self.settings.function_source_cap
        payload = renderer.evaluate(SNAPSHOT_SCRIPT, arg)
        return PageSnapshot.from_payload(payload)

    def assemble(self, snapshot: PageSnapshot) -> Dict[str, Any]:
        """Run the probes in order and merge their fragments.

        Args:
            snapshot: The captured page state.

        Returns:
            Dict[str, Any]: An envelope holding every key in ``ENVELOPE_KEYS``.
            Probes that fail or find nothing leave their slot untouched.
        """
        envelope = empty_envelope()
        for probe in self.probes:
            fragment = probe.run(snapshot, self.settings)
            if fragment is None:
                continue
            current = envelope.get(probe.section)
            if probe.key is not None:
                if isinstance(current, dict):
                    current[probe.key] = fragment
                else:
                    logger.debug("Probe %s targets non-mapping section %s", probe.name, probe.section)
            elif isinstance(fragment, dict) and isinstance(current, dict):
                current.update(fragment)
            else:
                envelope[probe.section] = fragment
        return envelope

    def collect(self, renderer: PageRenderer) -> Dict[str, Any]:
        return self.assemble(self.capture(renderer))
