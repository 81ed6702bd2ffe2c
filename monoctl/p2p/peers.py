#!/usr/bin/env python3
"""monoctl/p2p/peers.py
--------------------------------
Peer entries and the peers.json registry.

What it provides
----------------
* **Peer** ``(node_id, host, port)`` with the canonical ``<node-id>@<host>:<port>``
  text form used by CometBFT's ``seeds`` / ``persistent_peers`` keys.
* **PeersRegistry** parsed from a network's peers.json:
  - four peer lists (seeds, peers, persistent_peers, bootstrap_peers)
  - trusted RPC endpoints (state-sync verification)
  - optional port scheme (seed / per-validator P2P+RPC ports)

Peer list elements come in two encodings because the registry migrated
formats: the string form ``"<40-hex>@host:port"`` and the legacy object form
``{"node_id": ..., "address": ..., "port": ...}``. String is tried first.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from pydantic import BaseModel, ValidationError

from ..errors import ErrorKind, MonoctlError, PeerValidationError, SchemaError

DEFAULT_P2P_PORT = 26656

PEER_LIST_FIELDS = ("seeds", "peers", "persistent_peers", "bootstrap_peers")

_NODE_ID_RE = re.compile(r"[0-9a-fA-F]{40}")
# DNS name / IPv4 literal, or a bracketed IPv6 literal
_HOST_RE = re.compile(r"[a-zA-Z0-9.-]+|\[[0-9a-fA-F:.]+\]")
_PEER_RE = re.compile(r"([0-9a-fA-F]{40})@([a-zA-Z0-9.-]+|\[[0-9a-fA-F:.]+\])(?::(\d+))?")


# ---------------------------------------------------------------------------
# Peer
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Peer:
    node_id: str
    host: str
    port: int = DEFAULT_P2P_PORT

    def __str__(self) -> str:
        return f"{self.node_id}@{self.host}:{self.port or DEFAULT_P2P_PORT}"


def validate_peer(p: Peer) -> None:
    if not p.node_id:
        raise PeerValidationError("peer missing node_id")
    if not _NODE_ID_RE.fullmatch(p.node_id):
        raise PeerValidationError(f"invalid node_id format: {p.node_id} (expected 40 hex chars)")
    if not p.host:
        raise PeerValidationError("peer missing address")
    if not _HOST_RE.fullmatch(p.host):
        raise PeerValidationError(f"invalid peer address: {p.host}")
    if not (0 < int(p.port) <= 65535):
        raise PeerValidationError(f"peer port out of range: {p.port}")


def parse_peer(s: str) -> Peer:
    """Parse ``<node-id>@<host>[:<port>]``; node id is lower-cased, port defaults to 26656."""
    m = _PEER_RE.fullmatch((s or "").strip())
    if m is None:
        raise PeerValidationError(f"invalid peer string format: {s} (expected nodeid@host:port)")
    port = int(m.group(3)) if m.group(3) else DEFAULT_P2P_PORT
    peer = Peer(node_id=m.group(1).lower(), host=m.group(2), port=port)
    validate_peer(peer)
    return peer


def _peer_from_object(obj: Dict[str, Any]) -> Peer:
    node_id = obj.get("node_id")
    address = obj.get("address")
    if not isinstance(node_id, str) or not node_id:
        raise PeerValidationError("peer missing node_id")
    if not isinstance(address, str) or not address:
        raise PeerValidationError("peer missing address")

    raw_port = obj.get("port")
    if raw_port is None or raw_port == 0:
        port = DEFAULT_P2P_PORT
    elif isinstance(raw_port, bool):
        raise PeerValidationError(f"invalid port: {raw_port!r}")
    elif isinstance(raw_port, int):
        port = raw_port
    elif isinstance(raw_port, str) and raw_port.isdigit():
        port = int(raw_port)
    else:
        raise PeerValidationError(f"invalid port: {raw_port!r}")

    peer = Peer(node_id=node_id.lower(), host=address, port=port)
    validate_peer(peer)
    return peer


def parse_peer_element(raw: Any) -> Peer:
    if isinstance(raw, str):
        return parse_peer(raw)
    if isinstance(raw, dict):
        return _peer_from_object(raw)
    raise PeerValidationError('peer must be string "nodeid@host:port" or object {node_id, address, port}')


def parse_peer_list(raw: Any, field_name: str) -> List[Peer]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise SchemaError(f"{field_name} must be an array")
    out: List[Peer] = []
    for i, elem in enumerate(raw):
        try:
            out.append(parse_peer_element(elem))
        except PeerValidationError as e:
            raise PeerValidationError(e.message, field=field_name, index=i) from e
    return out


def peers_to_string(peers: Iterable[Peer]) -> str:
    return ",".join(str(p) for p in peers)


def merge(a: Iterable[Peer], b: Iterable[Peer]) -> List[Peer]:
    """De-duplicate by node id, first occurrence wins, order preserved."""
    seen = set()
    out: List[Peer] = []
    for p in list(a) + list(b):
        if p.node_id in seen:
            continue
        seen.add(p.node_id)
        out.append(p)
    return out


# ---------------------------------------------------------------------------
# Registry schema
# ---------------------------------------------------------------------------


class PortPair(BaseModel):
    p2p: int = 0
    rpc: int = 0


class PortScheme(BaseModel):
    seeds: Optional[PortPair] = None
    validators: Dict[str, PortPair] = {}


class RPCEndpoints(BaseModel):
    comet_rpc: str = ""
    cosmos_rest: str = ""
    evm_rpc: str = ""


@dataclass
class PeersRegistry:
    chain_id: str
    network_name: str = ""
    evm_chain_id: int = 0
    genesis_sha256: str = ""
    genesis_url: str = ""
    seeds: List[Peer] = field(default_factory=list)
    peers: List[Peer] = field(default_factory=list)
    persistent_peers: List[Peer] = field(default_factory=list)
    bootstrap_peers: List[Peer] = field(default_factory=list)
    trusted_rpc_endpoints: List[str] = field(default_factory=list)
    port_scheme: Optional[PortScheme] = None
    rpc_endpoints: Optional[RPCEndpoints] = None

    def seed_p2p_port(self) -> int:
        ps = self.port_scheme
        if ps is not None and ps.seeds is not None and ps.seeds.p2p:
            return ps.seeds.p2p
        return DEFAULT_P2P_PORT

    def validator_p2p_port(self, name: str) -> int:
        ps = self.port_scheme
        if ps is not None:
            pair = ps.validators.get(name)
            if pair is not None and pair.p2p:
                return pair.p2p
            default = ps.validators.get("default")
            if default is not None and default.p2p:
                return default.p2p
        return DEFAULT_P2P_PORT

    def all_persistent(self) -> List[Peer]:
        """General peers merged with persistent peers (what the join flow dials)."""
        return merge(self.peers, self.persistent_peers)


def parse_peers_registry(data: bytes) -> PeersRegistry:
    """
    Parse and validate a peers.json document.

    Raises SchemaError for malformed JSON / missing chain_id and
    PeerValidationError (with field + index) for any bad peer.
    """
    try:
        raw = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise SchemaError(f"failed to parse peers.json: {e}") from e
    if not isinstance(raw, dict):
        raise SchemaError("failed to parse peers.json: top level must be an object")

    chain_id = raw.get("chain_id")
    if not isinstance(chain_id, str) or not chain_id:
        raise SchemaError("peers.json missing chain_id")

    lists = {name: parse_peer_list(raw.get(name), name) for name in PEER_LIST_FIELDS}

    trusted = raw.get("trusted_rpc_endpoints") or []
    if not isinstance(trusted, list) or not all(isinstance(x, str) for x in trusted):
        raise SchemaError("trusted_rpc_endpoints must be an array of strings")

    try:
        port_scheme = PortScheme.model_validate(raw["port_scheme"]) if raw.get("port_scheme") else None
        rpc_endpoints = RPCEndpoints.model_validate(raw["rpc_endpoints"]) if raw.get("rpc_endpoints") else None
    except ValidationError as e:
        raise SchemaError(f"invalid peers.json: {e}") from e

    evm_chain_id = raw.get("evm_chain_id") or 0
    if isinstance(evm_chain_id, bool) or not isinstance(evm_chain_id, int) or evm_chain_id < 0:
        raise SchemaError(f"invalid evm_chain_id: {evm_chain_id!r}")

    return PeersRegistry(
        chain_id=chain_id,
        network_name=str(raw.get("network_name") or ""),
        evm_chain_id=evm_chain_id,
        genesis_sha256=str(raw.get("genesis_sha256") or "").lower(),
        genesis_url=str(raw.get("genesis_url") or ""),
        seeds=lists["seeds"],
        peers=lists["peers"],
        persistent_peers=lists["persistent_peers"],
        bootstrap_peers=lists["bootstrap_peers"],
        trusted_rpc_endpoints=list(trusted),
        port_scheme=port_scheme,
        rpc_endpoints=rpc_endpoints,
    )


def validate_peers_registry(reg: PeersRegistry, expected_chain_id: str, expected_sha: str = "") -> None:
    """Check that a registry belongs to the expected chain (and genesis, when known)."""
    if reg.chain_id != expected_chain_id:
        raise MonoctlError(
            f"chain_id mismatch: expected {expected_chain_id}, got {reg.chain_id}",
            kind=ErrorKind.CHAIN_ID_MISMATCH,
        )
    if expected_sha and reg.genesis_sha256 != expected_sha.lower():
        raise MonoctlError(
            f"genesis_sha256 mismatch: expected {expected_sha}, got {reg.genesis_sha256}",
            kind=ErrorKind.DIGEST_MISMATCH,
        )
