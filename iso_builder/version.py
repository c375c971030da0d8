from __future__ import annotations

import re
from typing import Tuple

VERSION_RE = re.compile(r"^[vV]?(\d+)\.(\d+)\.(\d+)$")


class InvalidVersionError(ValueError):
    """Version string is not X.Y.Z or vX.Y.Z."""


def validate_version(version: str) -> str:
    """Return ``version`` unchanged if it is a release tag, else raise."""

    if not isinstance(version, str) or not VERSION_RE.fullmatch(version):
        raise InvalidVersionError(f"Invalid version format: {version!r} (expected X.Y.Z or vX.Y.Z)")
    return version


def strip_version_prefix(version: str) -> str:
    if version[:1] in ("v", "V"):
        return version[1:]
    return version


def parse_version(version: str) -> Tuple[int, int, int]:
    m = VERSION_RE.fullmatch(version or "")
    if not m:
        raise InvalidVersionError(f"Invalid version format: {version!r}")
    return int(m.group(1)), int(m.group(2)), int(m.group(3))


def extract_major_version(version: str) -> int:
    return parse_version(version)[0]


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as ``a`` sorts before, equal to or after ``b``."""

    pa, pb = parse_version(a), parse_version(b)
    if pa < pb:
        return -1
    if pa > pb:
        return 1
    return 0
