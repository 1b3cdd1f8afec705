"""Finding API group definitions among packages, and the files generated for them."""

from __future__ import annotations

import logging
import os
import posixpath
import shutil
from pathlib import Path
from typing import Iterable, Mapping

from csiproxy.apigen.gotypes import ApiGenError, Package, canonicalize_pkg_path
from csiproxy.apigen.groups import CSI_PROXY_API_PATH, GroupDefinition
from csiproxy.apiversion import is_valid_version

log = logging.getLogger(__name__)

# Doc comment lines starting with TAG_MARKER + TAG_NAME hold instructions for the generator:
#   +csi-proxy-api-gen                           marks a group definition's root package
#   +csi-proxy-api-gen=groupName:<snake_name>    sets the group's name (default: package name)
#   +csi-proxy-api-gen=serverBasePkg:<pkg_path>  base output package for server files
#   +csi-proxy-api-gen=clientBasePkg:<pkg_path>  base output package for client files
TAG_MARKER = "+"
TAG_NAME = "csi-proxy-api-gen"

# The comment on the first line of every generated file.
HEADER_COMMENT = "// Code generated by csi-proxy-api-gen. DO NOT EDIT.\n\n"


def extract_comment_tags(marker: str, lines: Iterable[str]) -> dict[str, list[str]]:
    """Collect "<marker>key=value" comment lines into a mapping of key to values."""
    tags: dict[str, list[str]] = {}
    for line in lines:
        line = line.strip(" ")
        if not line or not line.startswith(marker):
            continue
        key, _, value = line[len(marker):].partition("=")
        tags.setdefault(key, []).append(value)
    return tags


def find_api_group_definitions(
    inputs: Iterable[str], universe: Mapping[str, Package]
) -> list[GroupDefinition]:
    """Build the API group definitions found among the input package paths.

    A group is either a subdirectory of the canonical API path, or a package whose
    doc comments carry the generator's tag; its versions are its sub-packages.
    """
    # Shorter paths first, so parent packages are always processed before their children.
    pkg_paths = sorted(inputs, key=len)
    groups: dict[str, GroupDefinition] = {}

    for pkg_path in pkg_paths:
        log.debug("Considering input %s", pkg_path)
        pkg = universe.get(pkg_path)
        if pkg is None:
            # e.g. the input had no Go files
            continue

        if build_group_from_doc_comment(pkg_path, pkg, groups):
            continue

        if pkg_path.startswith(CSI_PROXY_API_PATH):
            build_canonical_group(pkg_path, pkg, groups)
            continue

        parts = pkg_path.split("/")
        parent_pkg_path = "/".join(parts[:-1])
        definition = groups.get(parent_pkg_path)
        if definition is not None:
            if not is_valid_version(pkg.name):
                raise ApiGenError(
                    f"Unexpected go package {pkg.name!r}, should be of the form "
                    f'"{parent_pkg_path}/<version>", where <version> should be a valid '
                    "API group version identifier"
                )
            log.debug("Found version %r for API group %r", pkg.name, parts[-2])
            definition.add_version(pkg)

    for group in groups.values():
        if not group.versions:
            raise ApiGenError(f"API group {group.name!r} doesn't have any version")
    return list(groups.values())


def build_group_from_doc_comment(
    pkg_path: str, pkg: Package, groups: dict[str, GroupDefinition]
) -> bool:
    """Register a group from the package's tagged doc comments; return False if it has none."""
    comment_tags = extract_comment_tags(TAG_MARKER, pkg.comments).get(TAG_NAME, [])
    if not comment_tags:
        return False

    definition = GroupDefinition(name=pkg.name, api_base_pkg=pkg.path)
    for comment_tag in comment_tags:
        comment_tag = comment_tag.strip()
        if not comment_tag:
            continue
        parts = comment_tag.split(":")
        if len(parts) != 2:
            raise ApiGenError(
                f"Malformed comment tag for package {pkg_path!r}, should be of the form "
                f'"<name>:<value>", found {comment_tag!r}'
            )
        name, value = parts[0].strip(), parts[1].strip()
        if name == "groupName":
            definition.name = value
        elif name == "serverBasePkg":
            definition.server_base_pkg = canonicalize_pkg_path(value)
        elif name == "clientBasePkg":
            definition.client_base_pkg = canonicalize_pkg_path(value)
        else:
            raise ApiGenError(f"Unknown comment tag {name!r} for package {pkg_path!r}")

    log.debug("Found API group %r", definition.name)
    groups[pkg.path] = definition
    return True


def build_canonical_group(
    pkg_path: str, pkg: Package, groups: dict[str, GroupDefinition]
) -> None:
    """Add a version package under the canonical API path to its group, creating the group."""
    parts = pkg_path.removeprefix(CSI_PROXY_API_PATH).split("/")
    if len(parts) == 1:
        # the group's root directory; handled through its versions' packages
        return

    if len(parts) != 2 or not is_valid_version(parts[1]):
        raise ApiGenError(
            f"Unexpected go package {pkg_path!r}, should be of the form "
            f'"{CSI_PROXY_API_PATH}<api_group_name>/<version>", where <version> should be '
            "a valid API group version identifier"
        )

    group_path = CSI_PROXY_API_PATH + parts[0]
    definition = groups.get(group_path)
    if definition is None:
        log.debug("Found API group %r", parts[0])
        definition = GroupDefinition(name=parts[0], api_base_pkg=group_path)
        groups[group_path] = definition
    definition.add_version(pkg)
    log.debug("Found version %r for API group %r", parts[1], parts[0])


def generated_files(group: GroupDefinition) -> list[str]:
    """Package-relative paths of every file always regenerated for the group."""
    files = [
        posixpath.join(group.server_pkg(), "api_group_generated.go"),
        posixpath.join(group.internal_server_pkg(), "types_generated.go"),
    ]
    for version in group.versions:
        files += [
            posixpath.join(group.versioned_server_pkg(version.name), "conversion_generated.go"),
            posixpath.join(group.versioned_server_pkg(version.name), "server_generated.go"),
            posixpath.join(group.versioned_client_pkg(version.name), "client_generated.go"),
        ]
    return files


def remove_generated_files(group: GroupDefinition, output_base: str | os.PathLike) -> None:
    """Remove the group's generated files under output_base; missing files are fine."""
    for relative in generated_files(group):
        target = Path(output_base, relative)
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            elif target.exists() or target.is_symlink():
                target.unlink()
        except OSError as err:
            raise ApiGenError(f"unable to remove {str(target)!r}: {err}") from err
        log.debug("Removed generated file %s", target)


def _file_exists(path: Path) -> bool:
    try:
        path.stat()
    except FileNotFoundError:
        return False
    except OSError as err:
        raise ApiGenError(f"unable to stat file {str(path)!r}: {err}") from err
    return True


def planned_outputs(group: GroupDefinition, output_base: str | os.PathLike) -> list[str]:
    """Package-relative paths of the files to generate for the group, in generation order.

    Skeleton files (server.go, types.go for single-version groups, and each version's
    conversion.go) are only planned when they do not already exist under output_base.
    """
    outputs = [
        posixpath.join(group.server_pkg(), "api_group_generated.go"),
        posixpath.join(group.internal_server_pkg(), "types_generated.go"),
    ]

    server_file = posixpath.join(group.server_pkg(), "server.go")
    if not _file_exists(Path(output_base, server_file)):
        outputs.append(server_file)

    types_file = posixpath.join(group.internal_server_pkg(), "types.go")
    if len(group.versions) == 1 and not _file_exists(Path(output_base, types_file)):
        outputs.append(types_file)

    for version in group.versions:
        server_pkg = group.versioned_server_pkg(version.name)
        outputs += [
            posixpath.join(server_pkg, "conversion_generated.go"),
            posixpath.join(server_pkg, "server_generated.go"),
            posixpath.join(group.versioned_client_pkg(version.name), "client_generated.go"),
        ]
        conversion_file = posixpath.join(server_pkg, "conversion.go")
        if not _file_exists(Path(output_base, conversion_file)):
            outputs.append(conversion_file)

    return outputs


def build_input_dirs(input_dirs: Iterable[str]) -> list[str]:
    """Make every input recursive, defaulting to the canonical API path when none is given."""
    dirs = list(input_dirs) or [CSI_PROXY_API_PATH]
    return [d if d.endswith("...") else canonicalize_pkg_path(d) + "/..." for d in dirs]