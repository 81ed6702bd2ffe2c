"""
The node binary (``monod``) as an external collaborator.

monoctl runs it exactly once per join, as
``monod init <moniker> --chain-id <id> --home <home>``, and scans the combined
output for the generated node id.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import socket
import subprocess
from pathlib import Path
from typing import Optional

from .errors import ErrorKind, MonoctlError
from .home.layout import NodeHome
from .settings import get_settings

log = logging.getLogger(__name__)

SYSTEM_BIN_DIR = Path("/usr/local/bin")
DEFAULT_MONIKER = "mono-node"
MAX_MONIKER_LEN = 20

_NODE_ID_RE = re.compile(r'"node_id"\s*:\s*"([0-9a-fA-F]{40})"')


def _is_executable(p: Path) -> bool:
    return p.is_file() and os.access(str(p), os.X_OK)


def find_binary(provided: Optional[str] = None, home=None) -> Path:
    """Search order: provided path, ``<home>/bin``, /usr/local/bin, then PATH."""
    if provided:
        p = Path(os.path.expanduser(provided))
        if p.is_file():
            return p
        raise MonoctlError(f"monod binary not found at: {p}", kind=ErrorKind.BINARY_NOT_FOUND)

    name = get_settings().node.binary_name
    for d in (NodeHome.at(home).bin_dir, SYSTEM_BIN_DIR):
        candidate = d / name
        if _is_executable(candidate):
            return candidate

    found = shutil.which(name)
    if found:
        return Path(found)
    raise MonoctlError(
        f"{name} binary not found. Install it with: monoctl monod install",
        kind=ErrorKind.BINARY_NOT_FOUND,
    )


def clean_moniker(hostname: str) -> str:
    return hostname.strip().lower().replace(".", "-")[:MAX_MONIKER_LEN]


def generate_moniker(hostname: Optional[str] = None) -> str:
    if hostname is None:
        try:
            hostname = socket.gethostname()
        except OSError:
            hostname = ""
    return clean_moniker(hostname) or DEFAULT_MONIKER


def parse_node_id(output: str) -> str:
    m = _NODE_ID_RE.search(output or "")
    return m.group(1).lower() if m else ""


def init_node(binary: Path, home, moniker: str, chain_id: str) -> str:
    """Run ``init`` to completion and return the node id ("" when not printed)."""
    argv = [str(binary), "init", moniker, "--chain-id", chain_id, "--home", str(NodeHome.at(home))]
    log.info("running %s", " ".join(argv))
    try:
        proc = subprocess.run(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
    except OSError as e:
        raise MonoctlError(f"monod init failed: {e}", kind=ErrorKind.INIT_FAILED) from e
    if proc.returncode != 0:
        raise MonoctlError(
            f"monod init failed: exit status {proc.returncode}\nOutput: {proc.stdout}",
            kind=ErrorKind.INIT_FAILED,
        )
    return parse_node_id(proc.stdout)
