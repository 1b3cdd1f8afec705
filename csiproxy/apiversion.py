"""API version names in Kubernetes style: "v1", "v1alpha2", "v2beta3", ..."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import IntEnum

_NAME_RE = re.compile(r"v([1-9][0-9]*)(?:(alpha|beta)([1-9][0-9]*))?")

_UINT_MAX = 2**64 - 1


class InvalidVersionError(ValueError):
    """Raised when a string is not a valid API version name."""


class Qualifier(IntEnum):
    """Stability qualifier of a version; later members are more recent."""

    ALPHA = 0
    BETA = 1
    STABLE = 2


class Comparison(IntEnum):
    """Result of comparing two versions."""

    LESSER = -1
    EQUAL = 0
    GREATER = 1


def _compare(a: int, b: int) -> Comparison:
    if a < b:
        return Comparison.LESSER
    if a > b:
        return Comparison.GREATER
    return Comparison.EQUAL


def _to_uint(text: str, name: str) -> int:
    value = int(text)
    if value > _UINT_MAX:
        raise InvalidVersionError(
            f"unable to convert {text!r} from version name {name!r} to int: value out of range"
        )
    return value


@dataclass(frozen=True)
class Version:
    """A parsed API version."""

    major: int
    qualifier: Qualifier = Qualifier.STABLE
    qualifier_version: int = 0
    raw_name: str = ""

    def compare(self, other: Version) -> Comparison:
        """Return LESSER if other is more recent, GREATER if self is, else EQUAL."""
        for mine, theirs in (
            (self.major, other.major),
            (int(self.qualifier), int(other.qualifier)),
            (self.qualifier_version, other.qualifier_version),
        ):
            result = _compare(mine, theirs)
            if result != Comparison.EQUAL:
                return result
        return Comparison.EQUAL

    def __str__(self) -> str:
        return self.raw_name


def new_version(name: str) -> Version:
    """Parse a version name such as "v1alpha2"; raise InvalidVersionError if invalid."""
    match = _NAME_RE.fullmatch(name)
    if match is None:
        raise InvalidVersionError(f"invalid version name: {name!r}")

    major = _to_uint(match.group(1), name)
    qualifier = Qualifier.STABLE
    qualifier_version = 0
    if match.group(2):
        qualifier = Qualifier.ALPHA if match.group(2) == "alpha" else Qualifier.BETA
        qualifier_version = _to_uint(match.group(3), name)

    return Version(
        major=major,
        qualifier=qualifier,
        qualifier_version=qualifier_version,
        raw_name=name,
    )


def is_valid_version(name: str) -> bool:
    """Return True iff name is a valid version name."""
    return _NAME_RE.fullmatch(name) is not None