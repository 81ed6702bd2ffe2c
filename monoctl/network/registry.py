"""
Embedded network table.

Every supported chain is listed here with its consensus chain-id, EVM chain-id,
seed DNS names and the URLs its genesis and peer registry are published at.
Lookups never touch the network; see ``canonical.resolve_canonical`` for the
fetch + cache + fallback resolver.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple

from ..errors import UnknownNetworkError

# Reserved for local development; no production record may carry it.
LOCALNET_EVM_CHAIN_ID = 262145


class NetworkName(str, Enum):
    LOCALNET = "Localnet"
    SPRINTNET = "Sprintnet"
    TESTNET = "Testnet"
    MAINNET = "Mainnet"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Network:
    name: NetworkName
    chain_id: str
    evm_chain_id: int
    seed_dns: Tuple[str, ...] = field(default_factory=tuple)
    genesis_url: str = ""
    peers_url: str = ""

    def evm_chain_id_hex(self) -> str:
        return f"0x{self.evm_chain_id:x}"

    def seed_string(self, port: int = 0) -> str:
        """Comma-joined ``host:port`` seed DNS list (node ids are resolved elsewhere)."""
        if not self.seed_dns:
            return ""
        port = port or 26656
        return ",".join(f"{dns}:{port}" for dns in self.seed_dns)


def _seeds(net: str) -> Tuple[str, ...]:
    return tuple(f"seed{i}.{net}.mononodes.xyz" for i in (1, 2, 3))


_CORE_PEERS = "https://raw.githubusercontent.com/monolythium/mono-core-peers/prod/networks"
_NETWORKS_REPO = "https://raw.githubusercontent.com/monolythium/networks/main"

_NETWORKS: Dict[NetworkName, Network] = {
    NetworkName.LOCALNET: Network(
        name=NetworkName.LOCALNET,
        chain_id="mono-local-1",
        evm_chain_id=LOCALNET_EVM_CHAIN_ID,  # 0x40001
    ),
    NetworkName.SPRINTNET: Network(
        name=NetworkName.SPRINTNET,
        chain_id="mono-sprint-1",
        evm_chain_id=262146,  # 0x40002
        seed_dns=_seeds("sprintnet"),
        genesis_url=f"{_NETWORKS_REPO}/sprintnet/genesis.json",
        peers_url=f"{_NETWORKS_REPO}/networks/sprintnet.json",
    ),
    NetworkName.TESTNET: Network(
        name=NetworkName.TESTNET,
        chain_id="mono-test-1",
        evm_chain_id=262147,  # 0x40003
        seed_dns=_seeds("testnet"),
        genesis_url=f"{_CORE_PEERS}/testnet/genesis.json",
        peers_url=f"{_CORE_PEERS}/testnet/peers.json",
    ),
    NetworkName.MAINNET: Network(
        name=NetworkName.MAINNET,
        chain_id="mono-1",
        evm_chain_id=262148,  # 0x40004
        seed_dns=_seeds("mainnet"),
        genesis_url=f"{_CORE_PEERS}/mainnet/genesis.json",
        peers_url=f"{_CORE_PEERS}/mainnet/peers.json",
    ),
}

_ORDER = (NetworkName.LOCALNET, NetworkName.SPRINTNET, NetworkName.TESTNET, NetworkName.MAINNET)


def parse_name(s: str) -> NetworkName:
    lower = (s or "").strip().lower()
    for n in _ORDER:
        if n.value.lower() == lower:
            return n
    raise UnknownNetworkError(f"unknown network: {s} (valid: Localnet, Sprintnet, Testnet, Mainnet)")


def get(name) -> Network:
    """Accepts a NetworkName or any case-insensitive spelling of one."""
    if not isinstance(name, NetworkName):
        name = parse_name(str(name))
    try:
        return _NETWORKS[name]
    except KeyError:
        raise UnknownNetworkError(f"unknown network: {name}") from None


def get_by_chain_id(chain_id: str) -> Network:
    for n in _ORDER:
        if _NETWORKS[n].chain_id == chain_id:
            return _NETWORKS[n]
    raise UnknownNetworkError(f"unknown chain ID: {chain_id}")


def list_networks() -> List[Network]:
    return [_NETWORKS[n] for n in _ORDER]


def expected_evm_chain_id(name: str) -> int:
    """0 for names outside the table."""
    for n in _ORDER:
        if n.value == name:
            return _NETWORKS[n].evm_chain_id
    return 0
