"""Helpers for end-to-end environments: directory comparison, paths, and virtual disks."""

from __future__ import annotations

import difflib
import functools
import hashlib
import logging
import ntpath
import os
import random
import subprocess
import sys
from dataclasses import dataclass
from typing import Callable

from csiproxy.iscsi_scripts import PowershellError

log = logging.getLogger(__name__)

KUBELET_PATH = "C:\\var\\lib\\kubelet"
PLUGIN_PATH_TEMPLATE = "C:\\var\\lib\\kubelet\\plugins\\testplugin-{}.csi.io\\"
INITIAL_DISK_SIZE = 1 * 1024 * 1024 * 1024
PARTITION_STYLE = "GPT"
_UINT32_MAX = 2**32 - 1


def _md5_of(path: str) -> str:
    hasher = hashlib.md5()
    try:
        with open(path, "rb") as handle:
            for chunk in iter(lambda: handle.read(65536), b""):
                hasher.update(chunk)
    except OSError as err:
        raise OSError(f"unable to read {path!r}: {err}") from err
    return hasher.hexdigest()


def _strip_suffixes(name: str, suffixes: tuple[str, ...]) -> str:
    for suffix in suffixes:
        name = name.removesuffix(suffix)
    return name


def file_hashes(directory: str, *suffixes_to_remove: str) -> dict[str, str]:
    """Map the relative path of every file under directory to its MD5 hex digest.

    Each of suffixes_to_remove is stripped, in order, from the relative paths.
    """
    directory = directory.replace("/", os.sep)
    if os.path.isfile(directory):
        return {_strip_suffixes("", suffixes_to_remove): _md5_of(directory)}

    def _raise(err: OSError) -> None:
        raise OSError(f"unable to descend into {err.filename!r}: {err}") from err

    hashes: dict[str, str] = {}
    for root, _dirs, files in os.walk(directory, onerror=_raise):
        for file_name in files:
            file_path = os.path.join(root, file_name)
            relative = os.path.relpath(file_path, directory)
            hashes[_strip_suffixes(relative, suffixes_to_remove)] = _md5_of(file_path)
    return hashes


def _read_text(path: str) -> str:
    with open(path, encoding="utf-8", errors="replace") as handle:
        return handle.read()


def recursive_diff(dir1: str, dir2: str, *suffixes_to_remove: str) -> list[str]:
    """Compare two directory trees file by file; return a message per difference found."""
    hashes1 = file_hashes(dir1, *suffixes_to_remove)
    hashes2 = file_hashes(dir2, *suffixes_to_remove)
    log.debug("Hashes for dir1: %s", hashes1)
    log.debug("Hashes for dir2: %s", hashes2)

    problems: list[str] = []
    for file_path, hash1 in hashes1.items():
        hash2 = hashes2.pop(file_path, None)
        if hash2 is None:
            problems.append(f'"{file_path}" present in "{dir1}" but not in "{dir2}"')
        elif hash1 != hash2:
            contents1 = _read_text(os.path.join(dir1, file_path)).splitlines(keepends=True)
            contents2 = _read_text(os.path.join(dir2, file_path)).splitlines(keepends=True)
            diff = "".join(difflib.unified_diff(contents1, contents2, dir1, dir2))
            problems.append(
                f'File "{file_path}" differs in "{dir1}" and "{dir2}":\nDiff:\n{diff}'
            )
    for file_path in hashes2:
        problems.append(f'"{file_path}" present in "{dir2}" but not in "{dir1}"')
    return problems


def kubelet_path_for(directory: str) -> str:
    """Return a test path inside the kubelet directory."""
    return ntpath.normpath(ntpath.join(KUBELET_PATH, "testdir", directory))


def is_running_on_gh_actions() -> bool:
    """True if CSI_PROXY_GH_ACTIONS is set to "TRUE"."""
    return os.environ.get("CSI_PROXY_GH_ACTIONS") == "TRUE"


def is_running_windows() -> bool:
    """True if the underlying OS is Windows."""
    return sys.platform == "win32"


def should_run_iscsi_tests() -> bool:
    """True if ENABLE_ISCSI_TESTS is set to "TRUE"; these tests alter the machine."""
    return os.environ.get("ENABLE_ISCSI_TESTS") == "TRUE"


def run_powershell_cmd(command: str) -> str:
    """Run a PowerShell command and return its combined output; raise PowershellError on failure."""
    args = [
        "powershell",
        "/c",
        f"& {{ $global:ProgressPreference = 'SilentlyContinue'; {command} }}",
    ]
    log.info("Executing command: %r", args)
    try:
        completed = subprocess.run(
            args,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            check=False,
        )
    except OSError as err:
        raise PowershellError(f"Command: {command}. Error: {err}") from err
    output = completed.stdout or ""
    if completed.returncode != 0:
        raise PowershellError(
            f"Error: exit status {completed.returncode}. Command: {command}. Out: {output}",
            output,
        )
    return output


@dataclass
class VirtualHardDisk:
    """A virtual hard disk used for end-to-end tests."""

    disk_number: int
    path: str
    mount: str
    test_plugin_path: str
    initial_size: int


def make_plugin_path() -> tuple[str, int]:
    """Return a random test plugin directory and the id it was built from."""
    test_id = random.randrange(1_000_000)
    return PLUGIN_PATH_TEMPLATE.format(test_id), test_id


def disk_init() -> tuple[VirtualHardDisk, Callable[[], None]]:
    """Create, mount, initialize and partition a VHD; return it with its cleanup function."""
    plugin_path, test_id = make_plugin_path()
    mount_path = f"{plugin_path}mount-{test_id}"
    vhdx_path = f"{plugin_path}disk-{test_id}.vhdx"

    run_powershell_cmd(f"mkdir {mount_path}")
    run_powershell_cmd(f"New-VHD -Path {vhdx_path} -SizeBytes {INITIAL_DISK_SIZE}")
    run_powershell_cmd(f"Mount-VHD -Path {vhdx_path}")

    unparsed = run_powershell_cmd(f"(Get-VHD -Path {vhdx_path}).DiskNumber").strip()
    if not unparsed.isdigit() or int(unparsed) > _UINT32_MAX:
        raise ValueError(f"invalid disk number: {unparsed!r}")
    disk_number = int(unparsed)

    run_powershell_cmd(
        f"Initialize-Disk -Number {disk_number} -PartitionStyle {PARTITION_STYLE}"
    )
    run_powershell_cmd(f"New-Partition -DiskNumber {disk_number} -UseMaximumSize")

    vhd = VirtualHardDisk(
        disk_number=disk_number,
        path=vhdx_path,
        mount=mount_path,
        test_plugin_path=plugin_path,
        initial_size=INITIAL_DISK_SIZE,
    )
    return vhd, functools.partial(disk_cleanup, vhdx_path, mount_path, plugin_path)


def disk_cleanup(vhdx_path: str, mount_path: str, plugin_path: str) -> None:
    """Dismount and delete a VHD and its directories; every step runs, failures are raised together."""
    commands = [
        f"Dismount-VHD -Path {vhdx_path}",
        f"rm {vhdx_path}",
        f"rmdir {mount_path}",
    ]
    if plugin_path:
        commands.append(f"rmdir {plugin_path}")

    failures: list[str] = []
    for command in commands:
        try:
            run_powershell_cmd(command)
        except PowershellError as err:
            failures.append(str(err))
    if failures:
        raise PowershellError("\n".join(failures))