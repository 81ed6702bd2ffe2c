"""
Genesis document handling.

Only the top-level ``chain_id`` is interpreted; every other field is carried
through untouched so the bytes written to ``config/genesis.json`` are exactly
the bytes that were downloaded and digested.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Union

from ..errors import ErrorKind, MonoctlError, SchemaError
from ..home.atomic import DIR_MODE, FILE_MODE, atomic_write_bytes
from ..home.layout import NodeHome

log = logging.getLogger(__name__)

_CHUNK = 64 * 1024


def validate(data: Union[bytes, str]) -> str:
    """Parse genesis JSON and return its non-empty ``chain_id``."""
    try:
        doc = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise SchemaError(f"invalid genesis JSON: {e}") from e
    if not isinstance(doc, dict):
        raise SchemaError("invalid genesis JSON: top level must be an object")
    chain_id = doc.get("chain_id")
    if not isinstance(chain_id, str) or not chain_id:
        raise SchemaError("genesis missing chain_id field")
    return chain_id


def read_chain_id(path: Union[str, Path]) -> str:
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise MonoctlError(f"failed to read genesis file: {e}", kind=ErrorKind.IO) from e
    return validate(data)


def digest_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def compute_digest(path: Union[str, Path]) -> str:
    h = hashlib.sha256()
    try:
        with open(path, "rb") as f:
            for chunk in iter(lambda: f.read(_CHUNK), b""):
                h.update(chunk)
    except OSError as e:
        raise MonoctlError(f"failed to open file: {e}", kind=ErrorKind.IO) from e
    return h.hexdigest()


def _digest_mismatch(expected: str, actual: str) -> MonoctlError:
    return MonoctlError(
        f"genesis SHA256 mismatch: expected {expected}, got {actual}",
        kind=ErrorKind.DIGEST_MISMATCH,
    )


def verify_digest(path: Union[str, Path], expected: str) -> None:
    actual = compute_digest(path)
    if actual != expected.strip().lower():
        raise _digest_mismatch(expected, actual)


def write(home, data: bytes, dry_run: bool = False) -> Path:
    """Write ``config/genesis.json``; under dry-run only the path is computed."""
    path = NodeHome.at(home).genesis_json
    if dry_run:
        return path
    try:
        atomic_write_bytes(path, data, mode=FILE_MODE, dir_mode=DIR_MODE)
    except OSError as e:
        raise MonoctlError(f"failed to write genesis file: {e}", kind=ErrorKind.IO) from e
    log.info("wrote genesis to %s", path)
    return path
