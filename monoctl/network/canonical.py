"""
Canonical network manifests.

The authoritative per-network descriptor lives in a separate git repository
(``<base>/<ref>/networks/<name>.json``). ``resolve_canonical`` fetches it,
checks it, caches it and converts it to a ``Network``; on any failure it falls
back to the cached copy and then to the embedded table. The one failure that
is never masked is a Localnet EVM chain-id showing up on another network.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from ..drift import DriftConfig
from ..errors import FetchError, LocalnetLeakError, MonoctlError, SchemaError
from ..fetch import Fetcher, HTTPFetcher
from ..settings import get_settings
from . import cache, registry
from .registry import LOCALNET_EVM_CHAIN_ID, Network, NetworkName

log = logging.getLogger(__name__)

_SHA256_RE = re.compile(r"[0-9a-fA-F]{64}")


class NetworkConfig(BaseModel):
    model_config = ConfigDict(extra="ignore")

    network_name: str
    cosmos_chain_id: str = ""
    evm_chain_id: int = 0
    evm_chain_id_hex: str = ""
    genesis_url: str = ""
    genesis_sha256: str = ""
    seeds: List[str] = []
    bootstrap_peers: List[str] = []
    rpc_endpoints: Dict[str, str] = {}
    port_scheme: Dict[str, Any] = {}
    network_status: str = ""
    config_version: str = ""
    updated_at: str = ""


class NetworkIndex(BaseModel):
    model_config = ConfigDict(extra="ignore")

    networks: List[str] = []
    updated_at: str = ""


def parse_network_config(data: Union[bytes, str]) -> NetworkConfig:
    try:
        return NetworkConfig.model_validate_json(data)
    except ValidationError as e:
        raise SchemaError(f"failed to parse network config: {e}") from e


# ---------------------------------------------------------------------------
# Checks
# ---------------------------------------------------------------------------


def validate_not_localnet_leak(config: NetworkConfig) -> None:
    if config.network_name != NetworkName.LOCALNET.value and config.evm_chain_id == LOCALNET_EVM_CHAIN_ID:
        raise LocalnetLeakError(
            f"FATAL: Localnet EVM chain ID ({LOCALNET_EVM_CHAIN_ID}) detected for {config.network_name}. "
            "This is a configuration error that will cause consensus failures. "
            f"Expected EVM chain ID for {config.network_name} is NOT {LOCALNET_EVM_CHAIN_ID}"
        )


def verify_network_config(config: NetworkConfig) -> None:
    expected = registry.expected_evm_chain_id(config.network_name)
    if expected and config.evm_chain_id != expected:
        raise SchemaError(
            f"{config.network_name} must have evm_chain_id={expected}, got {config.evm_chain_id}"
        )
    if not config.cosmos_chain_id:
        raise SchemaError(f"{config.network_name}: cosmos_chain_id is empty")
    if len(config.genesis_sha256) != 64:
        raise SchemaError(
            f"invalid genesis SHA256 length: expected 64, got {len(config.genesis_sha256)}"
        )
    if not _SHA256_RE.fullmatch(config.genesis_sha256):
        raise SchemaError("invalid genesis SHA256: not hex")


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------


def _base_and_ref(base_url: Optional[str], ref: Optional[str]):
    conf = get_settings().networks
    return (base_url or conf.canonical_base_url).rstrip("/"), (ref or conf.default_ref)


def network_config_url(name: str, ref: Optional[str] = None, base_url: Optional[str] = None) -> str:
    base, ref = _base_and_ref(base_url, ref)
    return f"{base}/{ref}/networks/{str(name).lower()}.json"


def fetch_network_config(
    name: str,
    ref: Optional[str] = None,
    *,
    fetcher: Optional[Fetcher] = None,
    base_url: Optional[str] = None,
) -> NetworkConfig:
    url = network_config_url(name, ref, base_url)
    fetcher = fetcher or HTTPFetcher()
    try:
        body = fetcher.fetch(url)
    except FetchError as e:
        if e.not_found:
            raise FetchError(f"network '{name}' not found in networks repo", url=url, status_code=404) from e
        raise
    return parse_network_config(body)


def fetch_network_index(
    ref: Optional[str] = None,
    *,
    fetcher: Optional[Fetcher] = None,
    base_url: Optional[str] = None,
) -> NetworkIndex:
    base, ref = _base_and_ref(base_url, ref)
    body = (fetcher or HTTPFetcher()).fetch(f"{base}/{ref}/index.json")
    try:
        return NetworkIndex.model_validate_json(body)
    except ValidationError as e:
        raise SchemaError(f"failed to parse network index: {e}") from e


# ---------------------------------------------------------------------------
# Resolve
# ---------------------------------------------------------------------------


def _check_identity(config: NetworkConfig, name: NetworkName) -> None:
    if config.network_name != name.value:
        raise SchemaError(f"manifest is for {config.network_name!r}, expected {name.value!r}")


def resolve_network_config(
    name,
    ref: Optional[str] = None,
    *,
    fetcher: Optional[Fetcher] = None,
    cache_dir: Optional[Path] = None,
    base_url: Optional[str] = None,
) -> Optional[NetworkConfig]:
    """
    Fetched (or cached) manifest for ``name``; None when only the embedded
    record is available. Raises LocalnetLeakError, nothing else.
    """
    net = registry.get(name)
    if net.name == NetworkName.LOCALNET:
        return None
    _, ref = _base_and_ref(base_url, ref)

    try:
        config = fetch_network_config(net.name.value, ref, fetcher=fetcher, base_url=base_url)
        validate_not_localnet_leak(config)
        _check_identity(config, net.name)
        verify_network_config(config)
    except LocalnetLeakError:
        raise
    except MonoctlError as e:
        log.warning("canonical config for %s@%s unavailable: %s", net.name, ref, e)
    else:
        cache.cache_network_config(config, ref, cache_dir=cache_dir)
        return config

    try:
        cached = cache.load_cached_config(net.name.value, ref, cache_dir=cache_dir)
    except SchemaError as e:
        log.warning("ignoring unreadable cache for %s@%s: %s", net.name, ref, e)
        cached = None

    if cached is not None:
        validate_not_localnet_leak(cached)
        try:
            _check_identity(cached, net.name)
            verify_network_config(cached)
        except SchemaError as e:
            log.warning("ignoring invalid cache for %s@%s: %s", net.name, ref, e)
        else:
            log.info("using cached config for %s@%s", net.name, ref)
            return cached

    log.warning("falling back to embedded config for %s", net.name)
    return None


def resolve_canonical(
    name,
    ref: Optional[str] = None,
    *,
    fetcher: Optional[Fetcher] = None,
    cache_dir: Optional[Path] = None,
    base_url: Optional[str] = None,
) -> Network:
    net = registry.get(name)
    config = resolve_network_config(net.name, ref, fetcher=fetcher, cache_dir=cache_dir, base_url=base_url)
    if config is None:
        return net
    return network_config_to_network(config)


def network_config_to_network(config: NetworkConfig) -> Network:
    """
    Seeds come as full peer strings in the manifest, so seed_dns is left empty.
    The manifest carries its own peer lists, so there is no separate registry URL.
    """
    name = NetworkName(config.network_name)
    embedded = registry.get(name)
    return Network(
        name=name,
        chain_id=config.cosmos_chain_id,
        evm_chain_id=config.evm_chain_id,
        genesis_url=config.genesis_url or embedded.genesis_url,
        peers_url="",
    )


def drift_config_from_network_config(config: NetworkConfig) -> DriftConfig:
    return DriftConfig(
        cosmos_chain_id=config.cosmos_chain_id,
        evm_chain_id=config.evm_chain_id,
        seeds=list(config.seeds),
        bootstrap_peers=list(config.bootstrap_peers),
    )
