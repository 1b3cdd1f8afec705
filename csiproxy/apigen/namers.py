"""Naming schemes used when generating code from API group definitions."""

from __future__ import annotations

from dataclasses import dataclass

from csiproxy.apigen.gotypes import GoType, to_camel, to_snake
from csiproxy.apigen.groups import ApiVersion, is_versioned_variable


def short_name(t: GoType) -> str:
    """A short variable name derived from a type's name, e.g. "request" for "FooBarRequest"."""
    result = to_snake(t.name.name).split("_")[-1]
    if result == t.name.name:
        result = result[:3]
    return result


class RemovePackageNamer:
    """Drops the package from a type's name: "v1.FooRequest" becomes "FooRequest"."""

    def name(self, t: GoType) -> str:
        return str(t.name).split(".")[-1]


class ShortNamer:
    """Names variables with short_name."""

    def name(self, t: GoType) -> str:
        return short_name(t)


@dataclass
class ShortenVersionPackageNamer:
    """Replaces a version's full package path in type names with the package name."""

    version: ApiVersion

    def name(self, t: GoType) -> str:
        return str(t.name).replace(self.version.package.path, self.version.package.name)


@dataclass
class VersionedVariableNamer:
    """Like ShortNamer, prefixing variables of versioned types with "versioned"."""

    version: ApiVersion

    def name(self, t: GoType) -> str:
        var_name = short_name(t)
        if is_versioned_variable(t, self.version):
            var_name = "versioned" + to_camel(var_name)
        return var_name