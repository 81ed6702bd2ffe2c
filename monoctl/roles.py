# monoctl/roles.py
"""
Node roles and the (seed_mode, pruning) settings each one requires.

- full_node:    seed_mode=false, pruning=custom (keep 100, interval 10)
- archive_node: seed_mode=false, pruning=nothing
- seed_node:    seed_mode=true,  pruning=nothing, history from height 1

A seed that prunes cannot serve blocksync from genesis, so seed_mode=true with
any pruning other than "nothing" is critical whatever role was declared.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple

from .drift import Severity
from .errors import MonoctlError, TomlKeyMissing
from .home import toml_patch
from .home.layout import NodeHome
from .home.toml_patch import Edit

log = logging.getLogger(__name__)


class NodeRole(str, Enum):
    FULL_NODE = "full_node"
    ARCHIVE_NODE = "archive_node"
    SEED_NODE = "seed_node"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class RoleConfig:
    seed_mode: bool
    pruning: str
    pruning_keep_recent: str
    pruning_interval: str
    earliest_height_check: bool = False  # earliest_block_height must be 1


@dataclass(frozen=True)
class RoleIssue:
    severity: Severity
    field: str
    expected: str
    actual: str
    message: str


@dataclass
class RoleValidationResult:
    role: NodeRole
    valid: bool = True
    issues: List[RoleIssue] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


_ROLE_CONFIGS: Dict[NodeRole, RoleConfig] = {
    NodeRole.FULL_NODE: RoleConfig(
        seed_mode=False,
        pruning="custom",
        pruning_keep_recent="100",
        pruning_interval="10",
    ),
    NodeRole.ARCHIVE_NODE: RoleConfig(
        seed_mode=False,
        pruning="nothing",
        pruning_keep_recent="0",
        pruning_interval="0",
    ),
    NodeRole.SEED_NODE: RoleConfig(
        seed_mode=True,
        pruning="nothing",
        pruning_keep_recent="0",
        pruning_interval="0",
        earliest_height_check=True,
    ),
}

_ALIASES: Dict[str, NodeRole] = {
    "full_node": NodeRole.FULL_NODE,
    "fullnode": NodeRole.FULL_NODE,
    "full": NodeRole.FULL_NODE,
    "archive_node": NodeRole.ARCHIVE_NODE,
    "archivenode": NodeRole.ARCHIVE_NODE,
    "archive": NodeRole.ARCHIVE_NODE,
    "seed_node": NodeRole.SEED_NODE,
    "seednode": NodeRole.SEED_NODE,
    "seed": NodeRole.SEED_NODE,
}


def parse_role(s: str) -> NodeRole:
    try:
        return _ALIASES[(s or "").strip().lower()]
    except KeyError:
        raise ValueError(f"invalid node role: {s} (valid: full_node, archive_node, seed_node)") from None


def all_roles() -> List[NodeRole]:
    return [NodeRole.FULL_NODE, NodeRole.ARCHIVE_NODE, NodeRole.SEED_NODE]


def role_description(role: NodeRole) -> str:
    return {
        NodeRole.FULL_NODE: "Normal node with pruning enabled, seed_mode=false",
        NodeRole.ARCHIVE_NODE: "Archive node with pruning disabled, seed_mode=false",
        NodeRole.SEED_NODE: (
            "Official seed: requires full archive (pruning=nothing), seed_mode=true, earliest_block_height=1"
        ),
    }.get(role, "Unknown role")


def get_role_config(role: NodeRole) -> RoleConfig:
    return _ROLE_CONFIGS[NodeRole(role)]


# -----------------------
# On-disk state
# -----------------------


def _read_state(home) -> Tuple[bool, str]:
    """(seed_mode, pruning) as currently configured; absent keys read as false / ""."""
    nh = NodeHome.at(home)
    config = toml_patch.load_toml(nh.config_toml)
    app = toml_patch.load_toml(nh.app_toml)

    try:
        seed_mode = toml_patch.lookup(config, "p2p", "seed_mode") is True
    except TomlKeyMissing:
        seed_mode = False
    try:
        pruning = str(toml_patch.lookup(app, "", "pruning"))
    except TomlKeyMissing:
        pruning = ""
    return seed_mode, pruning


def _flag(b: bool) -> str:
    return "true" if b else "false"


def validate(home, declared: NodeRole) -> RoleValidationResult:
    declared = NodeRole(declared)
    expected = get_role_config(declared)
    seed_mode, pruning = _read_state(home)
    result = RoleValidationResult(role=declared)

    if seed_mode != expected.seed_mode:
        # declared seed without seed_mode is critical; seed_mode on a non-seed is a warning
        severity = Severity.WARNING if (declared != NodeRole.SEED_NODE and seed_mode) else Severity.CRITICAL
        result.issues.append(
            RoleIssue(
                severity=severity,
                field="seed_mode",
                expected=_flag(expected.seed_mode),
                actual=_flag(seed_mode),
                message=f"seed_mode should be {_flag(expected.seed_mode)} for {declared} role",
            )
        )

    if pruning != expected.pruning:
        severity = Severity.CRITICAL if declared == NodeRole.SEED_NODE else Severity.WARNING
        result.issues.append(
            RoleIssue(
                severity=severity,
                field="pruning",
                expected=expected.pruning,
                actual=pruning,
                message=f"pruning should be '{expected.pruning}' for {declared} role",
            )
        )

    if seed_mode and pruning != "nothing":
        result.issues.append(
            RoleIssue(
                severity=Severity.CRITICAL,
                field="pruning+seed_mode",
                expected="pruning=nothing when seed_mode=true",
                actual=f"pruning={pruning} with seed_mode=true",
                message=(
                    "UNSAFE: seed_mode=true with pruning enabled. "
                    "Seeds must be full archive to serve genesis blocksync."
                ),
            )
        )

    result.valid = not result.issues
    home_str = str(NodeHome.at(home))
    for issue in result.issues:
        if issue.field == "seed_mode" and issue.severity == Severity.CRITICAL:
            result.suggestions.append(f"Run: monoctl node configure --role {declared} --home {home_str}")
        elif issue.field == "pruning" and issue.severity == Severity.CRITICAL:
            result.suggestions.append("Seed nodes require pruning=nothing. Change pruning or disable seed_mode.")
        elif issue.field == "pruning+seed_mode":
            result.suggestions.append(
                "CRITICAL: Either set pruning=nothing or disable seed_mode. Seeds must serve full history."
            )
    return result


def detect_current(home) -> NodeRole:
    seed_mode, pruning = _read_state(home)
    if seed_mode:
        return NodeRole.SEED_NODE
    if pruning == "nothing":
        return NodeRole.ARCHIVE_NODE
    return NodeRole.FULL_NODE


def is_seed_mode_allowed(home) -> Tuple[bool, str]:
    try:
        pruning = str(toml_patch.get_value(NodeHome.at(home).app_toml, "", "pruning"))
    except TomlKeyMissing:
        pruning = ""
    except MonoctlError:
        return False, "Cannot read app.toml"
    if pruning != "nothing":
        return False, (
            f"seed_mode requires pruning=nothing, but pruning={pruning}. Seeds must be full archive nodes."
        )
    return True, ""


def apply(home, role: NodeRole, dry_run: bool = False) -> List[str]:
    """
    Patch seed_mode (config.toml [p2p]) and the pruning keys (app.toml).
    Both files are checked before either is written. Returns the paths touched.
    """
    nh = NodeHome.at(home)
    cfg = get_role_config(role)
    plan = [
        (nh.config_toml, [Edit("p2p", "seed_mode", cfg.seed_mode)]),
        (
            nh.app_toml,
            [
                Edit("", "pruning", cfg.pruning),
                Edit("", "pruning-keep-recent", cfg.pruning_keep_recent),
                Edit("", "pruning-interval", cfg.pruning_interval),
            ],
        ),
    ]
    for path, edits in plan:
        toml_patch.patch_file(path, edits, dry_run=True)
    if not dry_run:
        for path, edits in plan:
            toml_patch.patch_file(path, edits)
        log.info("applied %s role settings to %s", role, nh)
    return [str(path) for path, _ in plan]
