"""Network identities: embedded table, canonical manifests and their cache."""

from .canonical import NetworkConfig, resolve_canonical, verify_network_config
from .registry import LOCALNET_EVM_CHAIN_ID, Network, NetworkName, get, get_by_chain_id, list_networks, parse_name

__all__ = [
    "LOCALNET_EVM_CHAIN_ID",
    "Network",
    "NetworkConfig",
    "NetworkName",
    "get",
    "get_by_chain_id",
    "list_networks",
    "parse_name",
    "resolve_canonical",
    "verify_network_config",
]
