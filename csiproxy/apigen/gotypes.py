"""A small model of Go types as seen by the API generator, with helpers on it."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum


class ApiGenError(Exception):
    """Raised when API group definitions are malformed or inconsistent."""


class Kind(str, Enum):
    """The kind of a Go type."""

    BUILTIN = "Builtin"
    STRUCT = "Struct"
    MAP = "Map"
    SLICE = "Slice"
    POINTER = "Pointer"
    ALIAS = "Alias"
    INTERFACE = "Interface"
    ARRAY = "Array"
    CHAN = "Chan"
    FUNC = "Func"
    DECLARATION_OF = "DeclarationOf"
    UNKNOWN = "Unknown"
    UNSUPPORTED = "Unsupported"
    PROTOBUF = "Protobuf"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class TypeName:
    """A type's name, qualified by the package it belongs to."""

    package: str = ""
    name: str = ""
    path: str = ""

    def __str__(self) -> str:
        if not self.package:
            return self.name
        return f"{self.package}.{self.name}"


@dataclass(eq=False)
class Member:
    """A struct member."""

    name: str
    type: GoType | None = None
    embedded: bool = False
    comment_lines: list[str] = field(default_factory=list)
    tags: str = ""


@dataclass(eq=False)
class Signature:
    """A function signature."""

    receiver: GoType | None = None
    parameters: list[GoType] = field(default_factory=list)
    results: list[GoType] = field(default_factory=list)
    variadic: bool = False
    comment_lines: list[str] = field(default_factory=list)


@dataclass(eq=False)
class GoType:
    """A Go type; types are compared by identity, as they may be cyclic."""

    name: TypeName
    kind: Kind = Kind.UNKNOWN
    members: list[Member] = field(default_factory=list)
    elem: GoType | None = None
    key: GoType | None = None
    underlying: GoType | None = None
    methods: dict[str, GoType] = field(default_factory=dict)
    signature: Signature | None = None
    comment_lines: list[str] = field(default_factory=list)
    second_closest_comment_lines: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return str(self.name)


@dataclass
class Package:
    """A Go package: its path, name, named types and doc comments."""

    path: str
    name: str
    types: dict[str, GoType] = field(default_factory=dict)
    comments: list[str] = field(default_factory=list)


def canonicalize_pkg_path(pkg_path: str) -> str:
    """Strip a single trailing slash so package paths are consistent."""
    return pkg_path[:-1] if pkg_path.endswith("/") else pkg_path


def snake_case_to_package_name(name: str) -> str:
    """Turn a snake case string into a Go package name."""
    return name.replace("_", "")


def _normalize_pkg(pkg: str) -> str:
    if pkg and not pkg.endswith("."):
        pkg += "."
    return pkg


def replace_types_package(t: GoType | None, pkg: str, new_pkg: str) -> GoType | None:
    """Return a copy of t moved from package pkg to new_pkg, along with every type it references."""
    return _replace(t, _normalize_pkg(pkg), _normalize_pkg(new_pkg), {})


def _replace(
    t: GoType | None, pkg: str, new_pkg: str, visited: dict[int, GoType]
) -> GoType | None:
    if t is None:
        return None
    if id(t) in visited:
        return visited[id(t)]

    result = GoType(
        name=TypeName(
            name=t.name.name.replace(pkg, new_pkg),
            package=t.name.package.replace(pkg, new_pkg),
        ),
        kind=t.kind,
        comment_lines=t.comment_lines,
        second_closest_comment_lines=t.second_closest_comment_lines,
    )
    visited[id(t)] = result

    result.members = [
        Member(
            name=member.name,
            embedded=member.embedded,
            comment_lines=member.comment_lines,
            tags=member.tags,
            type=_replace(member.type, pkg, new_pkg, visited),
        )
        for member in t.members
    ]
    result.elem = _replace(t.elem, pkg, new_pkg, visited)
    result.key = _replace(t.key, pkg, new_pkg, visited)
    result.underlying = _replace(t.underlying, pkg, new_pkg, visited)
    result.methods = {
        method_name: _replace(method, pkg, new_pkg, visited)
        for method_name, method in t.methods.items()
    }

    if t.signature is not None:
        result.signature = Signature(
            receiver=_replace(t.signature.receiver, pkg, new_pkg, visited),
            parameters=[_replace(p, pkg, new_pkg, visited) for p in t.signature.parameters],
            results=[_replace(r, pkg, new_pkg, visited) for r in t.signature.results],
            variadic=t.signature.variadic,
            comment_lines=t.signature.comment_lines,
        )

    return result


def is_internal_protobuf_field(member: Member) -> bool:
    """Return True iff the member is internal to protobuf and can be ignored."""
    return member.name.startswith("XXX_")


_NUMBER_SEQUENCE = re.compile(r"([a-zA-Z])(\d+)([a-zA-Z]?)")


def _add_number_boundaries(s: str) -> str:
    return _NUMBER_SEQUENCE.sub(r"\1 \2 \3", s)


def _is_upper(ch: str) -> bool:
    return "A" <= ch <= "Z"


def _is_lower(ch: str) -> bool:
    return "a" <= ch <= "z"


def to_camel(s: str) -> str:
    """Convert a string to UpperCamelCase."""
    s = _add_number_boundaries(s).strip(" ")
    out: list[str] = []
    cap_next = True
    for ch in s:
        if _is_upper(ch) or _is_lower(ch):
            out.append(ch.upper() if cap_next else ch)
            cap_next = False
        elif ch.isdigit():
            out.append(ch)
            cap_next = True
        else:
            cap_next = ch in "_ -."
    return "".join(out)


def to_snake(s: str) -> str:
    """Convert a string to snake_case, treating acronyms as whole words."""
    s = _add_number_boundaries(s).strip(" ")
    out = ""
    for i, ch in enumerate(s):
        case_changes = False
        if i + 1 < len(s):
            nxt = s[i + 1]
            case_changes = (_is_upper(ch) and _is_lower(nxt)) or (
                _is_lower(ch) and _is_upper(nxt)
            )
        if i > 0 and out and out[-1] != "_" and case_changes:
            if _is_upper(ch):
                out += "_" + ch
            else:
                out += ch + "_"
        elif ch in " _-":
            out += "_"
        else:
            out += ch
    return out.lower()