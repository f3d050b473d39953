"""Operator version information and feature gating by version."""

from __future__ import annotations

import os
import re

CRI_VERSION = "1.5.0"
DEFAULT_VERSION = "unknown"
DEFAULT_PRODUCT = "community"
DELIMITER = ","

_INTEGER = re.compile(r"[+-]?\d+")


def parse_combined_version(combined: str, delimiter: str = DELIMITER) -> tuple[str, str]:
    """Split a ``version<delimiter>product`` string into its two parts.

    Missing parts fall back to the defaults; an empty string yields both defaults.
    """
    version, product = DEFAULT_VERSION, DEFAULT_PRODUCT
    if not combined:
        return version, product
    fields = combined.split(delimiter)
    version = fields[0]
    if len(fields) > 1:
        product = fields[1]
    return version, product


def _to_int(text: str) -> int | None:
    if _INTEGER.fullmatch(text) is None:
        return None
    return int(text)


def check_version_has_cri_command(version: str) -> bool:
    """Return True when ``version`` is at least the release that ships the cri command."""
    parts = version.split(".")
    if len(parts) != 3:
        return False
    for part, cri_part in zip(parts, CRI_VERSION.split(".")):
        value = _to_int(part)
        if value is None:
            return False
        cri_value = int(cri_part)
        if value == cri_value:
            continue
        return value > cri_value
    return True


COMBINED_VERSION = os.environ.get("BLADEOP_COMBINED_VERSION", "")
VERSION, PRODUCT = parse_combined_version(COMBINED_VERSION)