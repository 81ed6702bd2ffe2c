"""
Error kinds surfaced by the monoctl core.

Every failure carries an ``ErrorKind`` so callers (the join pipeline, the
repair loop, a CLI shell) can branch on *what* went wrong without parsing
message text. Leaf operations raise; the pipeline converts the first fatal
error into a failed JoinStep.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NETWORK_UNKNOWN = "network_unknown"
    FETCH = "fetch"
    SCHEMA = "schema"
    VALIDATE_PEER = "validate_peer"
    CHAIN_ID_MISMATCH = "chain_id_mismatch"
    DIGEST_MISMATCH = "digest_mismatch"
    DIRTY_DATA = "dirty_data"
    CHAIN_ID_ON_DISK_MISMATCH = "chain_id_on_disk_mismatch"
    TOML_KEY_MISSING = "toml_key_missing"
    LOCALNET_LEAK = "localnet_leak"
    BINARY_NOT_FOUND = "binary_not_found"
    INIT_FAILED = "init_failed"
    IO = "io"


# Classes that must never be "proceeded past" by an operator.
FATAL_KINDS = frozenset(
    {
        ErrorKind.CHAIN_ID_MISMATCH,
        ErrorKind.DIGEST_MISMATCH,
        ErrorKind.LOCALNET_LEAK,
    }
)


class MonoctlError(RuntimeError):
    kind: ErrorKind = ErrorKind.IO

    def __init__(
        self,
        message: str,
        *,
        kind: Optional[ErrorKind] = None,
        remediation: str = "",
    ) -> None:
        super().__init__(message)
        if kind is not None:
            self.kind = kind
        self.message = message
        self.remediation = remediation

    @property
    def fatal(self) -> bool:
        return self.kind in FATAL_KINDS

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "remediation": self.remediation,
        }


class UnknownNetworkError(MonoctlError, ValueError):
    kind = ErrorKind.NETWORK_UNKNOWN


class FetchError(MonoctlError):
    kind = ErrorKind.FETCH

    def __init__(self, message: str, *, url: str = "", status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code

    @property
    def not_found(self) -> bool:
        return self.status_code == 404


class SchemaError(MonoctlError, ValueError):
    kind = ErrorKind.SCHEMA


class PeerValidationError(MonoctlError, ValueError):
    kind = ErrorKind.VALIDATE_PEER

    def __init__(self, message: str, *, field: str = "", index: Optional[int] = None) -> None:
        if field and index is not None:
            message = f"{field}[{index}]: {message}"
        super().__init__(message)
        self.field = field
        self.index = index


class TomlKeyMissing(MonoctlError):
    kind = ErrorKind.TOML_KEY_MISSING

    def __init__(self, path: str, missing: list) -> None:
        keys = ", ".join(f"'{k}' in [{s}]" if s else f"'{k}' (top level)" for s, k in missing)
        super().__init__(f"could not find {keys} in {path}")
        self.path = path
        self.missing = list(missing)


class LocalnetLeakError(MonoctlError, ValueError):
    kind = ErrorKind.LOCALNET_LEAK


class PreflightError(MonoctlError):
    """Terminal preflight outcome (``dirty_data`` or ``chain_id_on_disk_mismatch``)."""

    def __init__(self, kind: ErrorKind, message: str, details: str = "") -> None:
        super().__init__(message, kind=kind, remediation=details)

    @property
    def details(self) -> str:
        return self.remediation
