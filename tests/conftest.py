import json
import os
import stat
import sys

import pytest

from monoctl.fetch import MockFetcher
from monoctl.settings import get_settings

NODE_ID = "1640233292d71449a29a34837cfce4d5ce34bb28"
NODE_ID_2 = "aabbccddeeff00112233445566778899aabbccdd"
NODE_ID_3 = "0123456789abcdef0123456789abcdef01234567"

SPRINT_GENESIS_URL = "https://raw.githubusercontent.com/monolythium/networks/main/sprintnet/genesis.json"
SPRINT_PEERS_URL = "https://raw.githubusercontent.com/monolythium/networks/main/networks/sprintnet.json"

CONFIG_TOML = """\
# This is a TOML config file.
proxy_app = "tcp://127.0.0.1:26658"
moniker = "test-node"

[rpc]
laddr = "tcp://127.0.0.1:26657"

[p2p]
laddr = "tcp://0.0.0.0:26656"

# Address to advertise to peers for them to dial
external_address = ""

# Comma separated list of seed nodes to connect to
seeds = ""

# Comma separated list of nodes to keep persistent connections to
persistent_peers = ""

max_num_inbound_peers = 40
experimental_max_gossip_connections_to_persistent_peers = 0

# Set true to enable the peer-exchange reactor
pex = true
seed_mode = false

[mempool]
size = 5000
"""

APP_TOML = """\
# This is a TOML config file.
minimum-gas-prices = "0alyth"

# default: the last 362880 states are kept, pruning at 10 block intervals
pruning = "default"
pruning-keep-recent = "0"
pruning-interval = "0"

[api]
enable = false

[evm]
# EIP-155 chain id used for transaction signing
evm-chain-id = 262144
tracer = ""
"""

CLIENT_TOML = """\
# This is a TOML config file.

###############################################################################
###                           Client Configuration                            ###
###############################################################################

# The network chain ID
chain-id = ""
# The keyring's backend
keyring-backend = "os"
output = "text"
node = "tcp://localhost:26657"
broadcast-mode = "sync"
"""


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    for k in list(os.environ):
        if k.startswith("MONOCTL_"):
            monkeypatch.delenv(k, raising=False)
    cfg = tmp_path / "monoctl-config"
    monkeypatch.setenv("MONOCTL_CONFIG_DIR", str(cfg))
    get_settings.cache_clear()
    yield cfg
    get_settings.cache_clear()


def write_home(root, config=CONFIG_TOML, app=APP_TOML, client=CLIENT_TOML):
    conf = root / "config"
    conf.mkdir(parents=True, exist_ok=True)
    (conf / "config.toml").write_text(config)
    (conf / "app.toml").write_text(app)
    (conf / "client.toml").write_text(client)
    data = root / "data"
    data.mkdir(exist_ok=True)
    (data / "priv_validator_state.json").write_text('{"height":"0","round":0,"step":0}\n')
    return root


@pytest.fixture
def home(tmp_path):
    """An initialized node home, as left by `monod init`."""
    return write_home(tmp_path / "node")


@pytest.fixture
def empty_home(tmp_path):
    return tmp_path / "fresh"


@pytest.fixture
def fetcher():
    return MockFetcher()


def sprint_genesis(chain_id="mono-sprint-1"):
    return json.dumps({"chain_id": chain_id, "genesis_time": "2025-01-01T00:00:00Z"}).encode()


def snapshot_tree(root):
    """{relative path: bytes or None for dirs} for byte-equality checks."""
    out = {}
    if not root.exists():
        return out
    for dirpath, dirnames, filenames in os.walk(root):
        for d in dirnames:
            out[os.path.relpath(os.path.join(dirpath, d), root)] = None
        for f in filenames:
            p = os.path.join(dirpath, f)
            with open(p, "rb") as fh:
                out[os.path.relpath(p, root)] = fh.read()
    return out


@pytest.fixture
def fake_monod(tmp_path):
    """A shell stand-in for `monod init` that lays down the config templates."""
    if sys.platform.startswith("win"):
        pytest.skip("shell script binary")
    script = tmp_path / "bin" / "monod"
    script.parent.mkdir(parents=True, exist_ok=True)
    script.write_text(
        "#!/bin/sh\n"
        'set -e\n'
        'MONIKER="$2"\n'
        'CHAIN_ID="$4"\n'
        'HOME_DIR="$6"\n'
        'mkdir -p "$HOME_DIR/config" "$HOME_DIR/data"\n'
        "cat > \"$HOME_DIR/config/config.toml\" <<'MONOD_EOF'\n" + CONFIG_TOML + "MONOD_EOF\n"
        "cat > \"$HOME_DIR/config/app.toml\" <<'MONOD_EOF'\n" + APP_TOML + "MONOD_EOF\n"
        "cat > \"$HOME_DIR/config/client.toml\" <<'MONOD_EOF'\n" + CLIENT_TOML + "MONOD_EOF\n"
        'echo \'{"height":"0","round":0,"step":0}\' > "$HOME_DIR/data/priv_validator_state.json"\n'
        'echo "{\\"moniker\\":\\"$MONIKER\\",\\"chain_id\\":\\"$CHAIN_ID\\",\\"node_id\\":\\"' + NODE_ID + '\\"}" >&2\n'
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return script


@pytest.fixture
def no_public_ip():
    return lambda: ""


@pytest.fixture
def public_ip():
    return lambda: "135.181.202.153"
