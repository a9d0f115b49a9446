from __future__ import annotations

import re

UNREGISTERED_DEVICE = "Unregistered Device"
_PLACEHOLDER_MARKERS = ("unknown", "anonymous")
_DEVICE_SUFFIX = re.compile(r"\s*\(([^)]+)\)")


def normalize_name(raw_label: str | None) -> str:
    """Strip the device suffix, e.g. ``"Jane Doe (iPhone)"`` -> ``"Jane Doe"``."""
    if not raw_label:
        return UNREGISTERED_DEVICE
    return _DEVICE_SUFFIX.sub("", raw_label, count=1).strip() or UNREGISTERED_DEVICE


def is_excluded(identity: str) -> bool:
    """True for placeholder labels that never belong to an employee."""
    if identity == UNREGISTERED_DEVICE:
        return True
    lowered = identity.lower()
    return any(marker in lowered for marker in _PLACEHOLDER_MARKERS)
