# monoctl/settings.py
from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, List, Literal

import yaml
from pydantic import BaseModel, Field

# -------------------------
# Pydantic models (typed)
# -------------------------

DEFAULT_CANONICAL_BASE = "https://raw.githubusercontent.com/monolythium/networks"
DEFAULT_REF = "main"


class NetworksConf(BaseModel):
    canonical_base_url: str = DEFAULT_CANONICAL_BASE
    default_ref: str = DEFAULT_REF
    # relative paths are resolved against the config dir in finalize()
    cache_dir: str = "networks"


class HTTPConf(BaseModel):
    metadata_timeout_sec: float = 30.0
    public_ip_timeout_sec: float = 5.0
    user_agent: str = "monoctl"
    public_ip_endpoints: List[str] = Field(
        default_factory=lambda: [
            "https://api.ipify.org",
            "https://ifconfig.me/ip",
            "https://icanhazip.com",
        ]
    )


class NodeConf(BaseModel):
    home: str = "~/.monod"
    binary_name: str = "monod"
    p2p_port: int = 26656


class LoggingConf(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    json_format: bool = False


class Settings(BaseModel):
    networks: NetworksConf = NetworksConf()
    http: HTTPConf = HTTPConf()
    node: NodeConf = NodeConf()
    logging: LoggingConf = LoggingConf()

    # Derived fields (computed in finalize)
    CONFIG_DIR: Path = Path.home() / ".mono-commander"
    CACHE_DIR: Path = Path.home() / ".mono-commander" / "networks"
    NODE_HOME: Path = Path.home() / ".monod"

    def finalize(self) -> "Settings":
        self.CONFIG_DIR = user_config_dir()

        cache_dir = Path(os.path.expanduser(self.networks.cache_dir))
        if not cache_dir.is_absolute():
            cache_dir = self.CONFIG_DIR / cache_dir
        self.CACHE_DIR = cache_dir

        self.NODE_HOME = Path(os.path.expanduser(self.node.home))
        return self


def user_config_dir() -> Path:
    raw = os.getenv("MONOCTL_CONFIG_DIR")
    if raw:
        return Path(os.path.expanduser(raw))
    return Path.home() / ".mono-commander"


# -------------------------
# YAML load + env overlay
# -------------------------


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return data if isinstance(data, dict) else {}


def _apply_env_overrides(cfg: dict) -> dict:
    def set_in(keys: List[str], value: Any):
        d = cfg
        for k in keys[:-1]:
            d = d.setdefault(k, {})
        d[keys[-1]] = value

    if os.getenv("MONOCTL_CANONICAL_BASE_URL"):
        set_in(["networks", "canonical_base_url"], os.getenv("MONOCTL_CANONICAL_BASE_URL"))
    if os.getenv("MONOCTL_NETWORKS_REF"):
        set_in(["networks", "default_ref"], os.getenv("MONOCTL_NETWORKS_REF"))
    if os.getenv("MONOCTL_CACHE_DIR"):
        set_in(["networks", "cache_dir"], os.getenv("MONOCTL_CACHE_DIR"))

    if os.getenv("MONOCTL_HTTP_TIMEOUT_SEC"):
        set_in(["http", "metadata_timeout_sec"], float(os.getenv("MONOCTL_HTTP_TIMEOUT_SEC")))
    if os.getenv("MONOCTL_PUBLIC_IP_ENDPOINTS"):
        set_in(
            ["http", "public_ip_endpoints"],
            [x.strip() for x in os.getenv("MONOCTL_PUBLIC_IP_ENDPOINTS").split(",") if x.strip()],
        )

    if os.getenv("MONOCTL_HOME"):
        set_in(["node", "home"], os.getenv("MONOCTL_HOME"))
    if os.getenv("MONOCTL_BINARY"):
        set_in(["node", "binary_name"], os.getenv("MONOCTL_BINARY"))

    if os.getenv("MONOCTL_LOG_LEVEL"):
        set_in(["logging", "level"], os.getenv("MONOCTL_LOG_LEVEL").upper())
    if os.getenv("MONOCTL_LOG_JSON"):
        set_in(
            ["logging", "json_format"],
            os.getenv("MONOCTL_LOG_JSON").lower() in ("1", "true", "yes"),
        )

    return cfg


def load_settings() -> Settings:
    yaml_path = Path(os.getenv("MONOCTL_CONFIG") or (user_config_dir() / "config.yaml"))
    cfg = _load_yaml(yaml_path)
    cfg = _apply_env_overrides(cfg)
    return Settings(**cfg).finalize()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
