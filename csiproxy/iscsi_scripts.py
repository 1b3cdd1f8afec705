"""PowerShell helpers that set up and tear down a loopback iSCSI target."""

from __future__ import annotations

import json
import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass

log = logging.getLogger(__name__)


class PowershellError(RuntimeError):
    """Raised when a PowerShell command or script fails; output holds what it printed."""

    def __init__(self, message: str, output: str = "") -> None:
        super().__init__(message)
        self.output = output


_PREAMBLE = (
    '$ErrorActionPreference = "Stop"',
    '$ProgressPreference = "SilentlyContinue"',
)


def _script(*lines: str) -> str:
    """Join statements into a script that stops on the first error."""
    return "\n".join((*_PREAMBLE, *lines)) + "\n"


def _assign(variable: str, value: str) -> str:
    return f'${variable} = "{value}"'


def _credential(source_var: str) -> tuple[str, str]:
    return (
        f"$secure = ConvertTo-SecureString ${source_var} -AsPlainText -Force",
        "$chap = [System.Management.Automation.PSCredential]::new($username, $secure)",
    )


def _install_script() -> str:
    return _script(
        "Install-WindowsFeature -Name FS-iSCSITarget-Server",
        "Set-ItemProperty -Name AllowLoopBack -Value 1 "
        "-Path 'HKLM:\\SOFTWARE\\Microsoft\\iSCSI Target'",
        "Restart-Service -Name WinTarget",
    )


def _setup_script(target_name: str) -> str:
    return _script(
        _assign("targetName", target_name),
        '$address = (Get-NetIPAddress -AddressFamily IPv4 | '
        'Where-Object InterfaceAlias -eq "Ethernet").IPAddress',
        '$diskPath = "ramdisk:scratch-$($targetName).vhdx"',
        "New-IscsiVirtualDisk -Path $diskPath -Size 100MB | Out-Null",
        '$target = New-IscsiServerTarget -TargetName $targetName -InitiatorIds @("Iqn:*")',
        "Add-IscsiVirtualDiskTargetMapping -TargetName $targetName -DevicePath $diskPath | Out-Null",
        '@{ iqn = "$($target.TargetIqn)"; ip = $address } | ConvertTo-Json',
    )


def _chap_script(target_name: str, username: str, password: str) -> str:
    return _script(
        _assign("targetName", target_name),
        _assign("username", username),
        _assign("password", password),
        *_credential("password"),
        "Set-IscsiServerTarget -TargetName $targetName -EnableChap $true -Chap $chap",
    )


def _reverse_chap_script(target_name: str, password: str) -> str:
    # The initiator ignores the user name for mutual authentication.
    return _script(
        _assign("targetName", target_name),
        _assign("password", password),
        _assign("username", "doesnt-matter"),
        *_credential("password"),
        "Set-IscsiServerTarget -TargetName $targetName -EnableReverseChap $true -ReverseChap $chap",
    )


def _cleanup_script() -> str:
    return _script(
        'Get-Disk | Where-Object BusType -eq "iSCSI" | Set-Disk -IsOffline $true',
        "Get-IscsiTarget | Disconnect-IscsiTarget -Confirm:$false",
        "Get-IscsiTargetPortal | Remove-IscsiTargetPortal -Confirm:$false",
        "Get-IscsiServerTarget | Remove-IscsiServerTarget",
        "Get-IscsiVirtualDisk | Remove-IscsiVirtualDisk",
        "Stop-Service -Name MsiSCSI",
    )


@dataclass
class IscsiSetupConfig:
    """The target IQN and local address reported by the setup script."""

    iqn: str = ""
    ip: str = ""


def write_temp_file(text: str, extension: str) -> str:
    """Write text to a new temporary file with the given extension and return its path."""
    with tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        suffix=f".{extension}",
        dir=tempfile.gettempdir(),
        delete=False,
    ) as handle:
        handle.write(text)
        return handle.name


def run_powershell_script(script: str) -> str:
    """Run a script with PowerShell and return its combined output."""
    path = write_temp_file(script, "ps1")
    try:
        try:
            completed = subprocess.run(
                ["powershell", "-File", path],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                check=False,
            )
        except OSError as err:
            raise PowershellError(
                f"error running powershell script. path {path}, output: , err: {err}"
            ) from err
        output = completed.stdout or ""
        if completed.returncode != 0:
            raise PowershellError(
                f"error running powershell script. path {path}, output: {output}, "
                f"err: exit status {completed.returncode}",
                output,
            )
        return output
    finally:
        try:
            os.remove(path)
        except OSError:
            log.warning("unable to remove temporary script %s", path)


def _run_or_raise(script: str, message: str) -> str:
    try:
        return run_powershell_script(script)
    except PowershellError as err:
        raise PowershellError(f"{message}. err={err}", err.output) from err


def install_iscsi_target() -> str:
    """Install the iSCSI target feature, allow loopback, and return the output."""
    return _run_or_raise(_install_script(), "failed installing iSCSI target")


def set_chap(target_name: str, username: str, password: str) -> str:
    """Enable CHAP authentication on a target and return the output."""
    return _run_or_raise(
        _chap_script(target_name, username, password),
        f"failed setting CHAP on iSCSI target={target_name}",
    )


def set_reverse_chap(target_name: str, password: str) -> str:
    """Enable reverse (mutual) CHAP authentication on a target and return the output."""
    return _run_or_raise(
        _reverse_chap_script(target_name, password),
        f"failed setting reverse CHAP on iSCSI target={target_name}",
    )


def cleanup() -> str:
    """Disconnect and remove every iSCSI target, portal and virtual disk."""
    return _run_or_raise(_cleanup_script(), "failed cleaning up environment")


def setup_env(target_name: str) -> IscsiSetupConfig:
    """Create a RAM-backed iSCSI target and return its IQN and local address."""
    output = _run_or_raise(_setup_script(target_name), "failed setting up environment")
    data = json.loads(output)
    if not isinstance(data, dict):
        raise ValueError(f"unexpected setup output: {output!r}")
    return IscsiSetupConfig(iqn=str(data.get("iqn", "")), ip=str(data.get("ip", "")))