"""
Read-only checks that must pass before a join touches the node home.

1. dirty data: any leftover database directory under ``<home>/data`` from an
   InitChain that failed part way. ``priv_validator_state.json`` alone is not
   dirty; it sits on otherwise clean validator homes.
2. chain-id on disk: an initialized home whose genesis is for another chain.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..consensus import genesis
from ..errors import ErrorKind, MonoctlError, PreflightError
from .layout import NodeHome

log = logging.getLogger(__name__)

DB_DIRS = (
    "state.db",
    "application.db",
    "blockstore.db",
    "tx_index.db",
    "evidence.db",
    "snapshots",
)


def stale_entries(home) -> List[str]:
    data = NodeHome.at(home).data_dir
    if not data.exists():
        return []
    return [name for name in DB_DIRS if (data / name).exists()]


def existing_chain_id(home) -> Optional[str]:
    """chain_id of the on-disk genesis, or None when absent / unreadable."""
    path = NodeHome.at(home).genesis_json
    if not path.exists():
        return None
    try:
        return genesis.read_chain_id(path)
    except MonoctlError:
        log.debug("existing genesis at %s is unreadable", path)
        return None


def check(home, expected_chain_id: str) -> None:
    """Raise PreflightError on the first failing check."""
    nh = NodeHome.at(home)

    found = stale_entries(nh)
    if found:
        raise PreflightError(
            ErrorKind.DIRTY_DATA,
            "Detected leftover blockchain state from a failed initialization (dirty data directory: "
            + ", ".join(found)
            + ")",
            details=(
                f"The data directory at {nh.data_dir} contains database files\n"
                "from a previous failed startup. This will cause 'invalid chain-id on InitChain' errors.\n\n"
                f"Run: monoctl node reset --home {nh.root}\n\n"
                "This will clear all data and allow a fresh join.\n"
                "Use --preserve-keys to keep your validator keys."
            ),
        )

    if nh.is_initialized():
        existing = existing_chain_id(nh)
        if existing and existing != expected_chain_id:
            raise PreflightError(
                ErrorKind.CHAIN_ID_ON_DISK_MISMATCH,
                f"Chain ID mismatch: existing genesis has {existing!r}, but joining {expected_chain_id!r}",
                details=(
                    f"The node at {nh.root} was previously configured for chain {existing!r}.\n"
                    f"To fix this, run: monoctl node reset --home {nh.root}\n"
                    "This will clear all data and allow a fresh join."
                ),
            )
