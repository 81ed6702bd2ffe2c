"""
Join pipeline: take a node home from empty (or stale) to configured for a network.

Steps run in a fixed order and each one records a JoinStep:

    Resolve network, Download genesis, Validate genesis, Preflight checks,
    Initialize node, Download peers (or Load canonical peers),
    Configure bootstrap mode, Verify SHA256, Write genesis,
    Clear addrbook, Apply config, Set client chain-id, Set EVM chain-id,
    Set external address

Leaf operations raise MonoctlError; JoinPipeline.run() turns the first one
into a failed step and returns the partial JoinResult with ``error`` set.
Under dry-run nothing in the home is created, changed or removed, but every
step still reports where it would have written.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional

from . import binary
from .consensus import genesis
from .errors import ErrorKind, FetchError, MonoctlError
from .fetch import Fetcher, HTTPFetcher
from .home import preflight, toml_patch
from .home.layout import NodeHome
from .home.toml_patch import ConfigPatch
from .network import registry
from .network.canonical import NetworkConfig, network_config_to_network, resolve_network_config
from .network.registry import Network
from .p2p.external_addr import PublicIPDetector, format_external_address
from .p2p.peers import Peer, PeersRegistry, parse_peer_list, parse_peers_registry, validate_peers_registry
from .settings import get_settings

log = logging.getLogger(__name__)


class SyncMode(str, Enum):
    DEFAULT = "default"  # seeds + PEX
    BOOTSTRAP = "bootstrap"  # bootstrap peers as persistent peers, no seeds, PEX off
    STATESYNC = "statesync"  # seeds + PEX; trusted RPCs are parsed but not written

    def __str__(self) -> str:
        return self.value


class StepStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value


@dataclass
class JoinStep:
    name: str
    status: StepStatus = StepStatus.PENDING
    message: str = ""


@dataclass
class JoinOptions:
    network: str
    home: Optional[str] = None
    genesis_url: str = ""
    genesis_sha256: str = ""
    peers_url: str = ""
    dry_run: bool = False
    sync_mode: SyncMode = SyncMode.DEFAULT
    clear_addrbook: bool = False
    moniker: str = ""
    binary_path: str = ""
    # resolve through the canonical networks repo instead of the embedded table
    use_canonical: bool = False
    ref: Optional[str] = None


@dataclass
class JoinResult:
    steps: List[JoinStep] = field(default_factory=list)
    chain_id: str = ""
    node_id: str = ""
    genesis_path: str = ""
    config_patch: str = ""
    paths_written: List[str] = field(default_factory=list)
    initialized: bool = False
    success: bool = False
    error: Optional[MonoctlError] = None
    error_message: str = ""
    remediation: str = ""

    def step(self, name: str) -> Optional[JoinStep]:
        for s in self.steps:
            if s.name == name:
                return s
        return None

    @property
    def warnings(self) -> List[str]:
        return [f"{s.name}: {s.message}" for s in self.steps if s.status == StepStatus.SKIPPED and s.message]


_CANONICAL_GENESIS_HINT = "Use canonical genesis from mono-core-peers/prod"

_REMEDIATION: Dict[ErrorKind, str] = {
    ErrorKind.CHAIN_ID_MISMATCH: _CANONICAL_GENESIS_HINT,
    ErrorKind.DIGEST_MISMATCH: _CANONICAL_GENESIS_HINT,
    ErrorKind.LOCALNET_LEAK: "Do not join. Report the manifest to the network maintainers.",
    ErrorKind.BINARY_NOT_FOUND: "Install it with: monoctl monod install, or pass the binary path.",
    ErrorKind.TOML_KEY_MISSING: "The config template is incomplete. Run: monoctl node reset --home <home> and join again.",
    ErrorKind.FETCH: "Check connectivity or pass an explicit genesis URL.",
}


def _fatal(msg: str) -> str:
    return msg if msg.startswith("FATAL:") else f"FATAL: {msg}"


class JoinPipeline:
    def __init__(
        self,
        opts: JoinOptions,
        fetcher: Optional[Fetcher] = None,
        ip_detector: Optional[Callable[[], str]] = None,
    ):
        self.opts = opts
        self.fetcher = fetcher or HTTPFetcher()
        self.ip_detector = ip_detector or PublicIPDetector()
        self.home = NodeHome.at(opts.home)
        self.result = JoinResult()
        self.manifest: Optional[NetworkConfig] = None

    # ---------------------------
    # step bookkeeping
    # ---------------------------

    def _begin(self, name: str) -> JoinStep:
        log.info("join: %s", name)
        step = JoinStep(name)
        self.result.steps.append(step)
        return step

    def _done(self, step: JoinStep, message: str = "", status: StepStatus = StepStatus.SUCCESS) -> None:
        step.status = status
        step.message = message
        if status == StepStatus.SKIPPED and message:
            log.warning("join: %s skipped: %s", step.name, message)

    def _dry(self, message: str = "") -> str:
        return f"(dry-run) {message}".rstrip()

    def _wrote(self, path) -> None:
        if not self.opts.dry_run:
            self.result.paths_written.append(str(path))

    # ---------------------------
    # entry point
    # ---------------------------

    def run(self) -> JoinResult:
        try:
            self._run()
        except MonoctlError as e:
            msg = _fatal(e.message) if e.fatal else e.message
            current = self.result.steps[-1] if self.result.steps else None
            if current is not None and current.status == StepStatus.PENDING:
                current.status = StepStatus.FAILED
                current.message = _fatal(current.message or e.message) if e.fatal else (current.message or e.message)
            self.result.error = e
            self.result.error_message = msg
            self.result.remediation = e.remediation or _REMEDIATION.get(e.kind, "")
            log.error("join failed: %s", msg)
            return self.result

        self.result.success = True
        log.info("join complete for %s (home=%s)", self.opts.network, self.home)
        return self.result

    def _run(self) -> None:
        opts = self.opts
        network = self._resolve_network()

        genesis_url = opts.genesis_url or network.genesis_url
        if not genesis_url:
            raise MonoctlError(f"genesis URL required for network {network.name}", kind=ErrorKind.FETCH)

        data = self._download_genesis(genesis_url)
        chain_id = self._validate_genesis(data, network)
        self._preflight(chain_id)
        self._initialize(chain_id)

        if self.manifest is not None:
            reg = self._canonical_peers(self.manifest)
        else:
            reg = self._download_peers(network)
        seeds: List[Peer] = list(reg.seeds) if reg else []
        persistent: List[Peer] = reg.all_persistent() if reg else []
        bootstrap: List[Peer] = list(reg.bootstrap_peers) if reg else []

        if opts.sync_mode == SyncMode.BOOTSTRAP:
            patch = self._configure_bootstrap(bootstrap, persistent)
        else:
            patch = toml_patch.generate_config_patch(seeds, persistent)

        expected_sha = opts.genesis_sha256 or (reg.genesis_sha256 if reg else "")
        if not expected_sha and self.manifest is not None:
            expected_sha = self.manifest.genesis_sha256
        if expected_sha:
            self._verify_sha(data, expected_sha)

        self._write_genesis(data)
        if opts.sync_mode in (SyncMode.BOOTSTRAP, SyncMode.STATESYNC) or opts.clear_addrbook:
            self._clear_addrbook()
        self._apply_config(patch)
        self._set_client_chain_id(chain_id)
        if network.evm_chain_id:
            self._set_evm_chain_id(network.evm_chain_id)
        self._set_external_address()

    # ---------------------------
    # steps
    # ---------------------------

    def _resolve_network(self) -> Network:
        step = self._begin("Resolve network")
        source = "embedded"
        if self.opts.use_canonical:
            self.manifest = resolve_network_config(self.opts.network, self.opts.ref, fetcher=self.fetcher)
        if self.manifest is not None:
            network = network_config_to_network(self.manifest)
            source = "canonical"
        else:
            network = registry.get(self.opts.network)
        self._done(step, f"{network.name} chain_id={network.chain_id} ({source})")
        return network

    def _download_genesis(self, url: str) -> bytes:
        step = self._begin("Download genesis")
        data = self.fetcher.fetch(url)
        self._done(step, f"{len(data)} bytes from {url}")
        return data

    def _validate_genesis(self, data: bytes, network: Network) -> str:
        step = self._begin("Validate genesis")
        chain_id = genesis.validate(data)
        if chain_id != network.chain_id:
            step.message = (
                f"chain_id mismatch: expected {network.chain_id}, got {chain_id} "
                f"- wrong genesis for {network.name}, do NOT proceed"
            )
            raise MonoctlError(
                f"FATAL: wrong genesis for {network.name} - expected chain_id {network.chain_id}, got {chain_id}",
                kind=ErrorKind.CHAIN_ID_MISMATCH,
                remediation=_CANONICAL_GENESIS_HINT,
            )
        self.result.chain_id = chain_id
        self._done(step, f"chain_id={chain_id}")
        return chain_id

    def _preflight(self, chain_id: str) -> None:
        step = self._begin("Preflight checks")
        preflight.check(self.home, chain_id)
        self._done(step, "no issues detected")

    def _initialize(self, chain_id: str) -> None:
        step = self._begin("Initialize node")
        if self.home.is_initialized():
            self._done(step, "already initialized", StepStatus.SKIPPED)
            return

        path = binary.find_binary(self.opts.binary_path or None, self.home)
        moniker = self.opts.moniker or binary.generate_moniker()
        if self.opts.dry_run:
            self._done(step, self._dry(f"moniker={moniker}"))
            return

        node_id = binary.init_node(path, self.home, moniker, chain_id)
        self.result.node_id = node_id
        self.result.initialized = True
        self._done(step, f"moniker={moniker}, node_id={node_id}")

    def _fetch_registry(self, network: Network) -> Optional[bytes]:
        urls: List[str] = []
        for u in (self.opts.peers_url, network.peers_url):
            if u and u not in urls:
                urls.append(u)

        last: Optional[FetchError] = None
        for url in urls:
            try:
                return self.fetcher.fetch(url)
            except FetchError as e:
                last = e
                if not e.not_found:
                    break
                log.warning("peers registry not found at %s", url)
        if last is not None:
            raise last
        return None

    def _canonical_peers(self, config: NetworkConfig) -> Optional[PeersRegistry]:
        """Peers and digest from the verified manifest; bootstrap peers double as persistent peers."""
        step = self._begin("Load canonical peers")
        try:
            seeds = parse_peer_list(config.seeds, "seeds")
            bootstrap = parse_peer_list(config.bootstrap_peers, "bootstrap_peers")
        except MonoctlError as e:
            self._done(step, e.message, StepStatus.SKIPPED)
            return None

        reg = PeersRegistry(
            chain_id=config.cosmos_chain_id,
            network_name=config.network_name,
            evm_chain_id=config.evm_chain_id,
            genesis_sha256=config.genesis_sha256.lower(),
            genesis_url=config.genesis_url,
            seeds=seeds,
            persistent_peers=list(bootstrap),
            bootstrap_peers=bootstrap,
        )
        self._done(step, f"{len(seeds)} seeds, {len(bootstrap)} bootstrap")
        return reg

    def _download_peers(self, network: Network) -> Optional[PeersRegistry]:
        if not (self.opts.peers_url or network.peers_url):
            return None

        step = self._begin("Download peers")
        try:
            raw = self._fetch_registry(network)
            reg = parse_peers_registry(raw)
            validate_peers_registry(reg, network.chain_id)
        except MonoctlError as e:
            # peers are optional; genesis digest may still come from the caller
            self._done(step, e.message, StepStatus.SKIPPED)
            return None

        self._done(
            step,
            f"{len(reg.seeds)} seeds, {len(reg.all_persistent())} peers, {len(reg.bootstrap_peers)} bootstrap",
        )
        return reg

    def _configure_bootstrap(self, bootstrap: List[Peer], persistent: List[Peer]) -> ConfigPatch:
        step = self._begin("Configure bootstrap mode")
        if not bootstrap:
            if not persistent:
                raise MonoctlError(
                    "bootstrap mode requires bootstrap_peers in registry (none found)",
                    kind=ErrorKind.SCHEMA,
                )
            log.warning("no bootstrap_peers in registry, falling back to persistent_peers")
            bootstrap = persistent
        self._done(step, f"pex=false, {len(bootstrap)} bootstrap peers")
        return toml_patch.generate_bootstrap_config_patch(bootstrap)

    def _verify_sha(self, data: bytes, expected: str) -> None:
        step = self._begin("Verify SHA256")
        actual = genesis.digest_bytes(data)
        if actual != expected.strip().lower():
            step.message = f"SHA256 mismatch: expected {expected}, got {actual} - wrong genesis, do NOT proceed"
            raise MonoctlError(
                f"FATAL: wrong genesis for {self.opts.network} - SHA256 mismatch (expected {expected}, got {actual})",
                kind=ErrorKind.DIGEST_MISMATCH,
                remediation=_CANONICAL_GENESIS_HINT,
            )
        self._done(step, actual)

    def _write_genesis(self, data: bytes) -> None:
        step = self._begin("Write genesis")
        path = genesis.write(self.home, data, dry_run=self.opts.dry_run)
        self.result.genesis_path = str(path)
        self._wrote(path)
        self._done(step, self._dry(str(path)) if self.opts.dry_run else str(path))

    def _clear_addrbook(self) -> None:
        step = self._begin("Clear addrbook")
        removed = toml_patch.clear_addrbook(self.home, dry_run=self.opts.dry_run)
        msg = "removed addrbook.json" if removed else "no addrbook.json present"
        self._done(step, self._dry(msg) if self.opts.dry_run else msg)

    def _patch(self, path: Path, fn: Callable[[bool], object]) -> None:
        """Run a patch call; under dry-run only when the file already exists."""
        if self.opts.dry_run:
            if path.exists():
                fn(True)
            return
        fn(False)
        self._wrote(path)

    def _apply_config(self, patch: ConfigPatch) -> None:
        step = self._begin("Apply config")
        path = self.home.config_toml
        self._patch(path, lambda dry: toml_patch.apply_config_patch(path, patch, dry_run=dry))
        pex = "" if patch.pex is None else f", pex={'true' if patch.pex else 'false'}"
        self.result.config_patch = f"seeds={patch.seeds!r}, persistent_peers={patch.persistent_peers!r}{pex}"
        self._done(step, self._dry(str(path)) if self.opts.dry_run else "config.toml updated")

    def _set_client_chain_id(self, chain_id: str) -> None:
        step = self._begin("Set client chain-id")
        path = self.home.client_toml
        self._patch(path, lambda dry: toml_patch.set_client_chain_id(self.home, chain_id, dry_run=dry))
        self._done(step, self._dry(str(path)) if self.opts.dry_run else f'chain-id = "{chain_id}"')

    def _set_evm_chain_id(self, evm_chain_id: int) -> None:
        step = self._begin("Set EVM chain-id")
        path = self.home.app_toml
        if not self.opts.dry_run and not path.exists():
            self._done(step, f"app.toml not found at {path}, evm-chain-id not set", StepStatus.SKIPPED)
            return
        self._patch(path, lambda dry: toml_patch.set_evm_chain_id(self.home, evm_chain_id, dry_run=dry))
        self._done(step, self._dry(str(path)) if self.opts.dry_run else f"evm-chain-id = {evm_chain_id}")

    def _set_external_address(self) -> None:
        step = self._begin("Set external address")
        ip = self.ip_detector()
        if not ip:
            self._done(
                step,
                "could not detect public IP - set external_address manually if running as validator",
                StepStatus.SKIPPED,
            )
            return

        addr = format_external_address(ip, get_settings().node.p2p_port)
        path = self.home.config_toml
        try:
            self._patch(path, lambda dry: toml_patch.set_external_address(self.home, addr, dry_run=dry))
        except MonoctlError as e:
            # validators need it, but a node syncs fine without it
            log.warning("failed to set external_address: %s", e)
            self._done(step, e.message, StepStatus.FAILED)
            return
        self._done(step, self._dry(addr) if self.opts.dry_run else addr)


def join(
    opts: JoinOptions,
    fetcher: Optional[Fetcher] = None,
    ip_detector: Optional[Callable[[], str]] = None,
) -> JoinResult:
    return JoinPipeline(opts, fetcher=fetcher, ip_detector=ip_detector).run()


def update_peers(
    home,
    network,
    peers_url: str = "",
    expected_sha: str = "",
    dry_run: bool = False,
    fetcher: Optional[Fetcher] = None,
) -> ConfigPatch:
    """
    Refresh [p2p] seeds / persistent_peers of an existing home from the peer
    registry, after checking it belongs to ``network`` (and genesis, if given).
    """
    net = network if isinstance(network, Network) else registry.get(network)
    url = peers_url or net.peers_url
    if not url:
        raise MonoctlError(f"no peers registry URL for {net.name}", kind=ErrorKind.FETCH)

    reg = parse_peers_registry((fetcher or HTTPFetcher()).fetch(url))
    validate_peers_registry(reg, net.chain_id, expected_sha)

    patch = toml_patch.generate_config_patch(reg.seeds, reg.all_persistent())
    toml_patch.apply_config_patch(NodeHome.at(home).config_toml, patch, dry_run=dry_run)
    log.info(
        "updated peers for %s: %d seeds, %d persistent%s",
        net.name,
        len(reg.seeds),
        len(reg.all_persistent()),
        " (dry-run)" if dry_run else "",
    )
    return patch
