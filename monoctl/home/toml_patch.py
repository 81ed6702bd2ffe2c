"""
Line-oriented TOML editing for config.toml, app.toml and client.toml.

Writes never round-trip through a TOML parser: operators keep comments and key
order in these files, so edits replace exactly one assignment line and leave
every other byte alone. Reads (``validate_toml`` / ``get_value``) use the
``toml`` parser and never write back.

A line is the assignment for key K when, after trimming, it is not a comment,
starts with K, and the next non-blank character after K is ``=``. That keeps
``experimental_max_gossip_connections_to_persistent_peers = 0`` from matching
``persistent_peers``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

import toml

from ..errors import ErrorKind, MonoctlError, SchemaError, TomlKeyMissing
from ..p2p.peers import peers_to_string
from .atomic import FILE_MODE, atomic_write_text
from .layout import NodeHome

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class Edit:
    section: str  # "" = top of file, before any [header]
    key: str
    value: Any  # str is quoted; bool / int are written bare


def is_config_key(line: str, key: str) -> bool:
    trimmed = line.strip()
    if trimmed.startswith("#"):
        return False
    if not trimmed.startswith(key):
        return False
    rest = trimmed[len(key):].lstrip(" \t")
    return rest.startswith("=")


def _leading_ws(line: str) -> str:
    return line[: len(line) - len(line.lstrip(" \t"))]


def _section_header(trimmed: str) -> Optional[str]:
    if trimmed.startswith("[") and trimmed.endswith("]"):
        return trimmed[1:-1].strip()
    return None


def render_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    s = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{s}"'


def apply_edits(text: str, edits: Iterable[Edit]) -> Tuple[str, List[Tuple[str, str]]]:
    """
    Pure editor: returns ``(new_text, missing)`` where ``missing`` lists the
    ``(section, key)`` pairs that had no assignment line in their section.
    """
    edits = list(edits)
    by_section: Dict[str, List[Edit]] = {}
    for e in edits:
        by_section.setdefault(e.section, []).append(e)

    found = set()
    section = ""
    out: List[str] = []

    for line in text.split("\n"):
        trimmed = line.strip()
        header = _section_header(trimmed)
        if header is not None:
            section = header
            out.append(line)
            continue

        for e in by_section.get(section, ()):
            if is_config_key(line, e.key):
                eol = "\r" if line.endswith("\r") else ""
                out.append(f"{_leading_ws(line)}{e.key} = {render_value(e.value)}{eol}")
                found.add((e.section, e.key))
                break
        else:
            out.append(line)

    missing = [(e.section, e.key) for e in edits if (e.section, e.key) not in found]
    return "\n".join(out), missing


# ---------------------------------------------------------------------------
# File level
# ---------------------------------------------------------------------------


def _read(path: Path) -> str:
    if not path.exists():
        raise MonoctlError(
            f"{path.name} not found at {path} - run 'monod init' first",
            kind=ErrorKind.IO,
        )
    try:
        with open(path, encoding="utf-8", newline="") as f:
            return f.read()
    except OSError as e:
        raise MonoctlError(f"failed to read {path.name}: {e}", kind=ErrorKind.IO) from e
    except UnicodeDecodeError as e:
        raise MonoctlError(f"{path.name} is not valid UTF-8: {e}", kind=ErrorKind.IO) from e


def _write(path: Path, text: str) -> None:
    try:
        atomic_write_text(path, text, mode=FILE_MODE)
    except OSError as e:
        raise MonoctlError(f"failed to write {path.name}: {e}", kind=ErrorKind.IO) from e


def try_patch_file(path: PathLike, edits: Iterable[Edit], dry_run: bool = False) -> List[Tuple[str, str]]:
    """Like patch_file, but return the missing keys instead of raising. Nothing is written if any are missing."""
    path = Path(path)
    new_text, missing = apply_edits(_read(path), edits)
    if not dry_run and not missing:
        _write(path, new_text)
    return missing


def patch_file(path: PathLike, edits: Iterable[Edit], dry_run: bool = False) -> str:
    """
    Whole-file read-modify-write. Nothing is written unless every key was
    found; raises TomlKeyMissing otherwise. Returns the (would-be) new text.
    """
    path = Path(path)
    new_text, missing = apply_edits(_read(path), edits)
    if missing:
        raise TomlKeyMissing(path.name, missing)
    if not dry_run:
        _write(path, new_text)
        log.debug("patched %s", path)
    return new_text


# ---------------------------------------------------------------------------
# config.toml [p2p]
# ---------------------------------------------------------------------------


@dataclass
class ConfigPatch:
    seeds: str = ""
    persistent_peers: str = ""
    pex: Optional[bool] = None  # None = leave as is

    def edits(self) -> List[Edit]:
        out = [
            Edit("p2p", "seeds", self.seeds),
            Edit("p2p", "persistent_peers", self.persistent_peers),
        ]
        if self.pex is not None:
            out.append(Edit("p2p", "pex", bool(self.pex)))
        return out


def generate_config_patch(seeds, persistent_peers) -> ConfigPatch:
    return ConfigPatch(seeds=peers_to_string(seeds), persistent_peers=peers_to_string(persistent_peers))


def generate_bootstrap_config_patch(bootstrap_peers) -> ConfigPatch:
    """No seeds, bootstrap peers as persistent peers, PEX off."""
    return ConfigPatch(seeds="", persistent_peers=peers_to_string(bootstrap_peers), pex=False)


def apply_config_patch(config_path: PathLike, patch: ConfigPatch, dry_run: bool = False) -> str:
    return patch_file(config_path, patch.edits(), dry_run=dry_run)


def write_config_patch_reference(home, patch: ConfigPatch, dry_run: bool = False) -> Tuple[Path, str]:
    """Human-readable copy of what was applied, at ``config/config_patch.toml``."""
    path = NodeHome.at(home).config_dir / "config_patch.toml"
    pex_line = f"pex = {render_value(bool(patch.pex))}\n" if patch.pex is not None else ""
    content = (
        "# Mono Commander Config Patch\n"
        "# These values have been applied to config.toml [p2p] section\n"
        "\n"
        "[p2p]\n"
        f"seeds = {render_value(patch.seeds)}\n"
        f"persistent_peers = {render_value(patch.persistent_peers)}\n"
        f"{pex_line}"
    )
    if not dry_run:
        _write(path, content)
    return path, content


def set_external_address(home, address: str, dry_run: bool = False) -> Path:
    path = NodeHome.at(home).config_toml
    patch_file(path, [Edit("p2p", "external_address", address)], dry_run=dry_run)
    return path


def set_seed_mode(home, enabled: bool, dry_run: bool = False) -> Path:
    path = NodeHome.at(home).config_toml
    patch_file(path, [Edit("p2p", "seed_mode", bool(enabled))], dry_run=dry_run)
    return path


def clear_addrbook(home, dry_run: bool = False) -> bool:
    """Remove ``config/addrbook.json``; True when there was one to remove."""
    path = NodeHome.at(home).addrbook_json
    if not path.exists():
        return False
    if dry_run:
        return True
    try:
        path.unlink()
    except OSError as e:
        raise MonoctlError(f"failed to remove addrbook.json: {e}", kind=ErrorKind.IO) from e
    log.info("cleared %s", path)
    return True


# ---------------------------------------------------------------------------
# client.toml / app.toml
# ---------------------------------------------------------------------------


def set_client_chain_id(home, chain_id: str, dry_run: bool = False) -> Path:
    # An empty chain-id here makes InitChain fail with "expected: , got: <id>".
    path = NodeHome.at(home).client_toml
    patch_file(path, [Edit("", "chain-id", chain_id)], dry_run=dry_run)
    return path


def set_evm_chain_id(home, evm_chain_id: int, dry_run: bool = False) -> Path:
    path = NodeHome.at(home).app_toml
    patch_file(path, [Edit("evm", "evm-chain-id", int(evm_chain_id))], dry_run=dry_run)
    return path


def set_pruning(home, pruning: str, keep_recent: str, interval: str, dry_run: bool = False) -> Path:
    path = NodeHome.at(home).app_toml
    patch_file(
        path,
        [
            Edit("", "pruning", pruning),
            Edit("", "pruning-keep-recent", keep_recent),
            Edit("", "pruning-interval", interval),
        ],
        dry_run=dry_run,
    )
    return path


# ---------------------------------------------------------------------------
# Read side (full parser, never writes)
# ---------------------------------------------------------------------------


def load_toml(path: PathLike) -> Dict[str, Any]:
    path = Path(path)
    try:
        return toml.load(str(path))
    except FileNotFoundError as e:
        raise MonoctlError(f"{path.name} not found at {path}", kind=ErrorKind.IO) from e
    except OSError as e:
        raise MonoctlError(f"failed to read {path.name}: {e}", kind=ErrorKind.IO) from e
    except UnicodeDecodeError as e:
        raise MonoctlError(f"{path.name} is not valid UTF-8: {e}", kind=ErrorKind.IO) from e
    except toml.TomlDecodeError as e:
        raise SchemaError(f"invalid TOML in {path.name}: {e}") from e


def validate_toml(path: PathLike) -> None:
    load_toml(path)


def lookup(doc: Dict[str, Any], section: str, key: str) -> Any:
    table = doc
    if section:
        for part in section.split("."):
            table = table.get(part) if isinstance(table, dict) else None
            if table is None:
                raise TomlKeyMissing("document", [(section, key)])
    if not isinstance(table, dict) or key not in table:
        raise TomlKeyMissing("document", [(section, key)])
    return table[key]


def get_value(path: PathLike, section: str, key: str) -> Any:
    try:
        return lookup(load_toml(path), section, key)
    except TomlKeyMissing:
        raise TomlKeyMissing(Path(path).name, [(section, key)]) from None
