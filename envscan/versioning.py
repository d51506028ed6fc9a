"""Version increment strategies applied when a manifest is updated."""

from __future__ import annotations

import re
from typing import Callable, Dict

from .errors import ConfigError

VersionStrategy = Callable[[str], str]

_PRERELEASE_PATTERN = re.compile(r"^(\d+)\.(\d+)\.(\d+)-beta\.(\d+)$")


def bump_patch(version: str) -> str:
    """``1.2.3`` -> ``1.2.4``; anything that is not three integers is returned as-is."""
    parts = version.split(".")
    if len(parts) != 3 or not all(part.isdecimal() for part in parts):
        return version
    major, minor, patch = (int(part) for part in parts)
    return f"{major}.{minor}.{patch + 1}"


def bump_prerelease(version: str) -> str:
    """``1.2.3-beta.0`` -> ``1.2.3-beta.1``; plain releases fall back to a patch bump."""
    match = _PRERELEASE_PATTERN.match(version)
    if match is None:
        return bump_patch(version)
    major, minor, patch, beta = (int(group) for group in match.groups())
    return f"{major}.{minor}.{patch}-beta.{beta + 1}"


_STRATEGIES: Dict[str, VersionStrategy] = {
    "patch": bump_patch,
    "prerelease": bump_prerelease,
}


def resolve_version_strategy(name: str) -> VersionStrategy:
    try:
        return _STRATEGIES[name]
    except KeyError:
        raise ConfigError(f"Unknown version strategy '{name}'") from None


__all__ = ["VersionStrategy", "bump_patch", "bump_prerelease", "resolve_version_strategy"]
