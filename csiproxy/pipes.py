"""Named pipe paths the proxy listens on."""

from __future__ import annotations

from csiproxy.apiversion import Version

# Prefix for Windows named pipes' names.
PIPE_PREFIX = "\\\\.\\\\pipe\\\\"

# Prefix for the named pipes the proxy creates; the suffix is the API group and version.
CSI_PROXY_NAMED_PIPE_PREFIX = "csi-proxy-"


def pipe_path(api_group_name: str, api_version: Version) -> str:
    """Return the named pipe path for an API group at a version."""
    return f"{PIPE_PREFIX}{CSI_PROXY_NAMED_PIPE_PREFIX}{api_group_name}-{api_version}"