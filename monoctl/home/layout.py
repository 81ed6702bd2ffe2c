"""
Node home layout.

    <home>/config/{client.toml, app.toml, config.toml, genesis.json, addrbook.json}
    <home>/data/{state.db/, application.db/, blockstore.db/, tx_index.db/,
                 evidence.db/, snapshots/, priv_validator_state.json}

The node binary creates the tree during ``init``; monoctl only edits files in it.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..settings import get_settings


@dataclass(frozen=True)
class NodeHome:
    root: Path

    @classmethod
    def at(cls, home: Optional[Union[str, Path, "NodeHome"]] = None) -> "NodeHome":
        if isinstance(home, NodeHome):
            return home
        if home is None or str(home) == "":
            return cls(get_settings().NODE_HOME)
        return cls(Path(os.path.expanduser(str(home))))

    @property
    def config_dir(self) -> Path:
        return self.root / "config"

    @property
    def data_dir(self) -> Path:
        return self.root / "data"

    @property
    def bin_dir(self) -> Path:
        return self.root / "bin"

    @property
    def config_toml(self) -> Path:
        return self.config_dir / "config.toml"

    @property
    def app_toml(self) -> Path:
        return self.config_dir / "app.toml"

    @property
    def client_toml(self) -> Path:
        return self.config_dir / "client.toml"

    @property
    def genesis_json(self) -> Path:
        return self.config_dir / "genesis.json"

    @property
    def addrbook_json(self) -> Path:
        return self.config_dir / "addrbook.json"

    def is_initialized(self) -> bool:
        return self.config_toml.exists()

    def __str__(self) -> str:
        return str(self.root)
