"""Assertion normalizer -- converts Lighthouse CI shorthand to canonical.

Canonical form: {category: "performance", severity: "blocking", minScore: 0.9}

Lighthouse CI form (as a list entry or as a mapping):
    {"categories:performance": ["error", {"minScore": 0.9}]}

Levels map to severities: error -> blocking, warn -> advisory. Entries
with level "off" are dropped.
"""

from __future__ import annotations

from typing import Any

CATEGORY_PREFIX = "categories:"

LEVEL_SEVERITIES = {"error": "blocking", "warn": "advisory"}


def _expand_lhci(key: str, setting: Any) -> dict | None:
    """Expand one ``categories:<id>`` setting to canonical form.

    Returns None when the level is "off".
    """
    category = key[len(CATEGORY_PREFIX):]
    if isinstance(setting, str):
        level, options = setting, {}
    elif isinstance(setting, (list, tuple)) and setting:
        level = setting[0]
        options = setting[1] if len(setting) > 1 else {}
    else:
        raise ValueError(
            f"Assertion '{key}' must be a level or [level, options], got {setting!r}"
        )

    if level == "off":
        return None
    if level not in LEVEL_SEVERITIES:
        raise ValueError(
            f"Assertion '{key}' has unknown level '{level}'. "
            f"Use one of: error, warn, off."
        )
    if not isinstance(options, dict) or "minScore" not in options:
        raise ValueError(f"Assertion '{key}' needs a minScore option")

    return {
        "category": category,
        "severity": LEVEL_SEVERITIES[level],
        "minScore": options["minScore"],
    }


def normalize_assertion(raw: Any) -> dict | None:
    """Convert one list entry to canonical form.

    Canonical dicts (with a ``category`` key) are returned unchanged.

    Raises:
        ValueError: If the entry has no recognizable format.
    """
    if not isinstance(raw, dict):
        return raw

    if "category" in raw:
        return raw

    lhci_keys = [k for k in raw if isinstance(k, str) and k.startswith(CATEGORY_PREFIX)]
    if len(lhci_keys) != 1 or len(raw) != 1:
        raise ValueError(
            f"Assertion has no 'category' and is not a single "
            f"'{CATEGORY_PREFIX}<id>' entry: {sorted(map(str, raw))}"
        )
    key = lhci_keys[0]
    return _expand_lhci(key, raw[key])


def normalize_assertions(raw: Any) -> list:
    """Normalize a list of assertion entries, or a Lighthouse CI mapping."""
    if isinstance(raw, dict):
        entries = [{key: value} for key, value in raw.items()]
    elif isinstance(raw, (list, tuple)):
        entries = list(raw)
    else:
        return raw

    normalized = [normalize_assertion(entry) for entry in entries]
    return [entry for entry in normalized if entry is not None]
