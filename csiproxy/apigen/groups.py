"""API group definitions and the versions they hold."""

from __future__ import annotations

import bisect
import json
from dataclasses import dataclass, field
from typing import Iterator

from csiproxy.apigen.gotypes import (
    ApiGenError,
    GoType,
    Kind,
    Package,
    replace_types_package,
    to_camel,
)

# The proxy's root package path.
CSI_PROXY_ROOT_PATH = "github.com/kubernetes-csi/csi-proxy"
# The default location for API group definitions.
CSI_PROXY_API_PATH = CSI_PROXY_ROOT_PATH + "/client/api/"
# The default output location for generated server files.
DEFAULT_SERVER_BASE_PKG = CSI_PROXY_ROOT_PATH + "/pkg/server"
# The default output location for generated client files.
DEFAULT_CLIENT_BASE_PKG = CSI_PROXY_ROOT_PATH + "/client/groups"
# Stands in for a version's package path in internal server callbacks.
PKG_PLACEHOLDER = "__PKG_PLACEHOLDER__"


@dataclass
class NamedCallback:
    """A server callback with its name."""

    name: str
    callback: GoType


class OrderedCallbacks:
    """Named callbacks kept sorted by name, so generation is deterministic."""

    def __init__(self) -> None:
        self._items: list[NamedCallback] = []

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[NamedCallback]:
        return iter(self._items)

    def get_or_insert(self, callback: NamedCallback) -> NamedCallback | None:
        """Insert callback and return None, or return the existing one of the same name."""
        existing, pos = self.get_with_position(callback.name)
        if existing is not None:
            return existing
        self._items.insert(pos, callback)
        return None

    def get(self, name: str) -> NamedCallback | None:
        """Return the callback with this name, if present."""
        return self.get_with_position(name)[0]

    def get_with_position(self, name: str) -> tuple[NamedCallback | None, int]:
        """Return the callback with this name and its position, or None and where it would go."""
        pos = bisect.bisect_left(self._items, name, key=lambda c: c.name)
        if pos < len(self._items) and self._items[pos].name == name:
            return self._items[pos], pos
        return None, pos


@dataclass
class ApiVersion:
    """A single version of an API group."""

    package: Package
    server_callbacks: OrderedCallbacks = field(default_factory=OrderedCallbacks)

    @property
    def name(self) -> str:
        return self.package.name

    @property
    def path(self) -> str:
        return self.package.path


def is_builtin_error_type(t: GoType) -> bool:
    """Return True iff t is the built-in type "error"."""
    return t.kind == Kind.INTERFACE and t.name.name == "error" and t.name.package == ""


def is_versioned_variable(t: GoType, version: ApiVersion) -> bool:
    """Return True iff t belongs to the version's package."""
    return version.path in t.name.name or version.path in t.name.package


def _go_quote(s: str) -> str:
    return json.dumps(s)


@dataclass
class GroupDefinition:
    """An API group definition."""

    name: str
    api_base_pkg: str
    server_base_pkg: str = DEFAULT_SERVER_BASE_PKG
    client_base_pkg: str = DEFAULT_CLIENT_BASE_PKG
    versions: list[ApiVersion] = field(default_factory=list)
    # All the callbacks the internal server needs, across all versions.
    server_callbacks: OrderedCallbacks = field(default_factory=OrderedCallbacks)

    def add_version(self, version_pkg: Package) -> None:
        """Add a version from its package; raise ApiGenError if it does not fit the group."""
        interface_name = self.server_interface_name()
        server_interface = version_pkg.types.get(interface_name)
        if server_interface is None:
            raise ApiGenError(
                f"did not find interface {interface_name} in package {version_pkg.path}"
            )
        if server_interface.kind != Kind.INTERFACE:
            raise ApiGenError(
                f"type {interface_name} in package {version_pkg.path} should be an interface, "
                f"it actually is a {server_interface.kind}"
            )

        version = ApiVersion(package=version_pkg)
        self.versions.append(version)

        for callback_name, versioned_callback in server_interface.methods.items():
            self.validate_server_callback(callback_name, versioned_callback, version)
            version.server_callbacks.get_or_insert(NamedCallback(callback_name, versioned_callback))

            named = NamedCallback(
                callback_name,
                replace_types_package(versioned_callback, version_pkg.path, PKG_PLACEHOLDER),
            )
            previous = self.server_callbacks.get_or_insert(named)
            if previous is not None and str(named.callback) != str(previous.callback):
                message = (
                    f"Endpoint {callback_name} in API group {self.name} "
                    "inconsistent across versions:"
                )
                for vsn in self.versions:
                    vsn_callback = vsn.server_callbacks.get(callback_name)
                    if vsn_callback is not None:
                        message += f"\n  - in version {vsn.name}: {vsn_callback.callback}"
                message += (
                    "\nYields 2 different signatures for the internal server callback:"
                    f"\n{previous.callback}\nand\n{named.callback}"
                )
                raise ApiGenError(message)

    def validate_server_callback(
        self, callback_name: str, callback: GoType, version: ApiVersion
    ) -> None:
        """Check versioned parameters and non-final results are pointers, and the last result an error."""
        signature = callback.signature
        if signature is None:
            raise ApiGenError(
                f"Server callback {callback_name} in API {self.name} version {version.name} "
                "has no signature"
            )
        for param in signature.parameters:
            if is_versioned_variable(param, version) and param.kind != Kind.POINTER:
                raise ApiGenError(
                    f"Server callback {callback_name} in API {self.name} version {version.name} "
                    f"has a non-pointer versioned parameter: {param}"
                )
        last = len(signature.results) - 1
        for i, result in enumerate(signature.results):
            if i == last:
                if not is_builtin_error_type(result):
                    raise ApiGenError(
                        f"The last returned value for server callback {callback_name} in API "
                        f"{self.name} version {version.name} should be an error, "
                        f"found {result} instead"
                    )
            elif result.kind != Kind.POINTER:
                raise ApiGenError(
                    f"Server callback {callback_name} in API {self.name} version {version.name} "
                    f"has a non-pointer return value: {result}"
                )

    def server_interface_name(self) -> str:
        """Name of the server interface expected in each version's package."""
        return f"{to_camel(self.name)}Server"

    def server_pkg(self) -> str:
        return f"{self.server_base_pkg}/{self.name}"

    def internal_server_pkg(self) -> str:
        return f"{self.server_base_pkg}/{self.name}/impl"

    def versioned_server_pkg(self, version: str) -> str:
        return f"{self.server_base_pkg}/{self.name}/impl/{version}"

    def versioned_client_pkg(self, version: str) -> str:
        return f"{self.client_base_pkg}/{self.name}/{version}"

    def versioned_api_pkg(self, version: str) -> str:
        return f"{self.api_base_pkg}/{version}"

    def __str__(self) -> str:
        result = f"{{name: {_go_quote(self.name)}"
        if self.server_base_pkg and self.server_base_pkg != DEFAULT_SERVER_BASE_PKG:
            result += f", serverBasePkg: {_go_quote(self.server_base_pkg)}"
        if self.client_base_pkg and self.client_base_pkg != DEFAULT_CLIENT_BASE_PKG:
            result += f", clientBasePkg: {_go_quote(self.client_base_pkg)}"
        if self.versions:
            result += ", versions: [" + " ".join(v.name for v in self.versions) + "]"
        return result + "}"