"""Lightweight version comparison for declared dependency versions."""

from __future__ import annotations

import re

_LEADING_NUMBER = re.compile(r"\d+")
_DECLARED = re.compile(r"\d+(?:\.[0-9A-Za-z\-+]+)*")


def clean_version(declared: str) -> str | None:
    """Concrete version to look up for a declared constraint.

    Strips range operators and prefixes (``^1.2.3`` → ``1.2.3``,
    ``==2.0`` → ``2.0``, ``v1.4.0`` → ``1.4.0``). Returns None when the
    declaration names no version at all (``*``, ``latest``, git URLs).
    """
    m = _DECLARED.search(declared)
    if m is None:
        return None
    return m.group(0)


def version_key(version: str) -> tuple[int, ...]:
    """Numeric dotted components; non-numeric suffixes are stripped."""
    parts: list[int] = []
    for component in version.strip().lstrip("vV").split("."):
        m = _LEADING_NUMBER.match(component)
        parts.append(int(m.group(0)) if m else 0)
    return tuple(parts)


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1; missing components count as zero."""
    ka, kb = version_key(a), version_key(b)
    width = max(len(ka), len(kb))
    ka = ka + (0,) * (width - len(ka))
    kb = kb + (0,) * (width - len(kb))
    return (ka > kb) - (ka < kb)


def is_version_vulnerable(version: str, affected: str) -> bool:
    """Check a version against an affected-range expression.

    Supported forms: ``<X``, ``<=X``, ``min-max`` (inclusive) and an exact
    version.
    """
    affected = affected.strip()
    if affected.startswith("<="):
        return compare_versions(version, affected[2:]) <= 0
    if affected.startswith("<"):
        return compare_versions(version, affected[1:]) < 0

    lo, sep, hi = affected.partition("-")
    if sep and lo[:1].isdigit() and hi[:1].isdigit():
        return (
            compare_versions(version, lo) >= 0 and compare_versions(version, hi) <= 0
        )

    return compare_versions(version, affected) == 0
