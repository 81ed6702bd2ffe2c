"""
Drift detection and repair against a canonical network manifest.

detect_drift() reads the on-disk values through the TOML parser and compares
them to a DriftConfig; repair() rewrites them through the line editor, one
field at a time, so a failure on one file never blocks the others.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .errors import MonoctlError
from .home import toml_patch
from .home.layout import NodeHome
from .home.toml_patch import Edit
from .p2p.peers import parse_peer

log = logging.getLogger(__name__)


class Severity(str, Enum):
    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    INFO = "INFO"

    def __str__(self) -> str:
        return self.value


@dataclass
class DriftConfig:
    """Expected values; peer lists are canonical ``node_id@host:port`` strings."""

    cosmos_chain_id: str
    evm_chain_id: int = 0
    seeds: List[str] = field(default_factory=list)
    bootstrap_peers: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DriftResult:
    field: str
    expected: str
    actual: str
    file: str
    severity: Severity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "expected": self.expected,
            "actual": self.actual,
            "file": self.file,
            "severity": self.severity.value,
        }


@dataclass
class RepairResult:
    field: str
    file: str
    success: bool
    old_value: str = ""
    new_value: str = ""
    error: str = ""


# ---------------------------------------------------------------------------
# Detect
# ---------------------------------------------------------------------------


def _read(path, section: str, key: str) -> Optional[str]:
    try:
        value = toml_patch.get_value(path, section, key)
    except MonoctlError as e:
        log.debug("drift: skipping %s [%s] %s: %s", path, section, key, e)
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def detect_drift(home, expected: DriftConfig) -> List[DriftResult]:
    nh = NodeHome.at(home)
    drifts: List[DriftResult] = []

    chain_id = _read(nh.client_toml, "", "chain-id")
    if chain_id is not None and chain_id != expected.cosmos_chain_id:
        drifts.append(
            DriftResult("chain-id", expected.cosmos_chain_id, chain_id, "client.toml", Severity.CRITICAL)
        )

    evm = _read(nh.app_toml, "evm", "evm-chain-id")
    if evm is not None and evm != str(expected.evm_chain_id):
        drifts.append(
            DriftResult("evm-chain-id", str(expected.evm_chain_id), evm, "app.toml", Severity.CRITICAL)
        )

    seeds = _read(nh.config_toml, "p2p", "seeds")
    want_seeds = ",".join(expected.seeds)
    if expected.seeds and seeds is not None and seeds != want_seeds:
        drifts.append(DriftResult("seeds", want_seeds, seeds, "config.toml", Severity.WARNING))

    # bootstrap peers are what a deterministic join writes as persistent_peers
    peers = _read(nh.config_toml, "p2p", "persistent_peers")
    want_peers = ",".join(expected.bootstrap_peers)
    if expected.bootstrap_peers and peers is not None and peers != want_peers:
        drifts.append(DriftResult("persistent_peers", want_peers, peers, "config.toml", Severity.WARNING))

    return drifts


def has_critical_drift(drifts: List[DriftResult]) -> bool:
    return any(d.severity == Severity.CRITICAL for d in drifts)


def format_drift_report(drifts: List[DriftResult]) -> str:
    if not drifts:
        return "No drift detected. Configuration matches canonical source."

    lines = ["DRIFT DETECTED:"]
    for d in drifts:
        lines.append(f"  [{d.severity}] {d.file} {d.field}: expected '{d.expected}', got '{d.actual}'")
    out = "\n".join(lines) + "\n"
    if has_critical_drift(drifts):
        out += "\nRun: monoctl repair --network <network> to fix critical issues\n"
    return out


# ---------------------------------------------------------------------------
# Repair
# ---------------------------------------------------------------------------


def _parsed(peers: List[str]):
    out = []
    for s in peers:
        try:
            out.append(parse_peer(s))
        except MonoctlError:
            log.warning("repair: ignoring malformed peer %r", s)
    return out


def _repair_one(path, edits: List[Edit], result: RepairResult, dry_run: bool) -> RepairResult:
    try:
        missing = toml_patch.try_patch_file(path, edits, dry_run=dry_run)
    except MonoctlError as e:
        result.success = False
        result.error = e.message
        return result
    if missing:
        result.success = False
        result.error = "not found: " + ", ".join(f"[{s}] {k}" if s else k for s, k in missing)
    else:
        result.success = True
    return result


def repair(home, expected: DriftConfig, dry_run: bool = False) -> List[RepairResult]:
    nh = NodeHome.at(home)
    results: List[RepairResult] = []

    results.append(
        _repair_one(
            nh.client_toml,
            [Edit("", "chain-id", expected.cosmos_chain_id)],
            RepairResult(
                "chain-id",
                "client.toml",
                False,
                old_value=_read(nh.client_toml, "", "chain-id") or "",
                new_value=expected.cosmos_chain_id,
            ),
            dry_run,
        )
    )

    if expected.evm_chain_id:
        results.append(
            _repair_one(
                nh.app_toml,
                [Edit("evm", "evm-chain-id", int(expected.evm_chain_id))],
                RepairResult(
                    "evm-chain-id",
                    "app.toml",
                    False,
                    old_value=_read(nh.app_toml, "evm", "evm-chain-id") or "",
                    new_value=str(expected.evm_chain_id),
                ),
                dry_run,
            )
        )

    patch = toml_patch.generate_config_patch(_parsed(expected.seeds), _parsed(expected.bootstrap_peers))
    results.append(_repair_one(nh.config_toml, patch.edits(), RepairResult("p2p", "config.toml", False), dry_run))

    for r in results:
        if not r.success:
            log.warning("repair of %s %s failed: %s", r.file, r.field, r.error)
    return results


def format_repair_report(results: List[RepairResult], dry_run: bool = False) -> str:
    lines: List[str] = []
    if dry_run:
        lines += ["DRY RUN - No changes made", ""]
    lines.append("Repair Results:")

    all_ok = True
    for r in results:
        mark = "✓" if r.success else "✗"
        all_ok = all_ok and r.success
        if r.old_value and r.new_value:
            lines.append(f"  {mark} {r.file} {r.field}: '{r.old_value}' -> '{r.new_value}'")
        else:
            lines.append(f"  {mark} {r.file} {r.field}")
        if r.error:
            lines.append(f"    Error: {r.error}")

    out = "\n".join(lines) + "\n"
    if all_ok and not dry_run:
        out += "\nAll repairs successful. Run 'monoctl doctor' to verify.\n"
    return out
