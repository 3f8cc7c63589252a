"""Service catalog for the lawn (area) funnel.

The catalog order is the order line items appear in on every quote.
"""

from __future__ import annotations

from typing import Literal, Optional

ServiceKey = Literal["mowing", "aeration", "dethatching", "fertilizing"]
MowingFrequency = Literal["weekly", "biweekly"]

SERVICE_KEYS: tuple[str, ...] = ("mowing", "aeration", "dethatching", "fertilizing")
FREQUENCIES: tuple[str, ...] = ("weekly", "biweekly")
DEFAULT_FREQUENCY = "weekly"
DEFAULT_SERVICES: tuple[str, ...] = ("mowing",)

# Only these services accept (and require) a frequency
FREQUENCY_SERVICES = frozenset({"mowing"})

SERVICE_LABELS: dict[str, str] = {
    "mowing": "Mowing",
    "aeration": "Aeration",
    "dethatching": "Dethatching",
    "fertilizing": "Fertilizing",
}

# Identifiers used by earlier catalog revisions. ``None`` means the service
# was retired without a successor and is dropped on load.
LEGACY_SERVICE_ALIASES: dict[str, Optional[str]] = {
    "powerRake": "dethatching",
    "power_rake": "dethatching",
    "fertWeed": "fertilizing",
    "fert_weed": "fertilizing",
    "seed": None,
}


def is_known_service(key: object) -> bool:
    return isinstance(key, str) and key in SERVICE_KEYS


def accepts_frequency(key: str) -> bool:
    return key in FREQUENCY_SERVICES


def normalize_frequency(value: object) -> str:
    if isinstance(value, str) and value in FREQUENCIES:
        return value
    return DEFAULT_FREQUENCY


def migrate_service_keys(keys: object) -> list[str]:
    """Map a persisted selection onto the current catalog.

    Legacy identifiers are remapped, unknown ones dropped, duplicates
    collapsed (first occurrence wins). An empty result falls back to
    ``DEFAULT_SERVICES``.
    """
    migrated: list[str] = []
    if isinstance(keys, (list, tuple)):
        for raw in keys:
            if not isinstance(raw, str):
                continue
            key = raw.strip()
            if key in LEGACY_SERVICE_ALIASES:
                key = LEGACY_SERVICE_ALIASES[key] or ""
            if is_known_service(key) and key not in migrated:
                migrated.append(key)
    if not migrated:
        return list(DEFAULT_SERVICES)
    return migrated


def label_for(key: str, frequency: Optional[str] = None) -> str:
    label = SERVICE_LABELS.get(key, key)
    if frequency:
        return f"{label} ({frequency.capitalize()})"
    return label
