"""
On-disk cache of canonical network manifests.

Layout: ``<cache-dir>/<network_name>/<ref>/{config.json, meta.json}`` with
0755 directories and 0644 files. Writes are best-effort: a failed write is
logged and resolution carries on.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from ..errors import SchemaError
from ..home.atomic import DIR_MODE, FILE_MODE, atomic_write_json, ensure_dir, read_json
from ..settings import get_settings

if TYPE_CHECKING:
    from .canonical import NetworkConfig

log = logging.getLogger(__name__)


def cache_root(cache_dir: Optional[Path] = None) -> Path:
    return Path(cache_dir) if cache_dir is not None else get_settings().CACHE_DIR


def entry_dir(network_name: str, ref: str, cache_dir: Optional[Path] = None) -> Path:
    return cache_root(cache_dir) / network_name / ref


def cache_network_config(config: "NetworkConfig", ref: str, cache_dir: Optional[Path] = None) -> bool:
    d = entry_dir(config.network_name, ref, cache_dir)
    meta = {
        "cached_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "ref": ref,
    }
    try:
        ensure_dir(d, DIR_MODE)
        atomic_write_json(d / "config.json", config.model_dump(), mode=FILE_MODE)
        atomic_write_json(d / "meta.json", meta, mode=FILE_MODE)
    except OSError:
        log.warning("failed to cache network config for %s@%s", config.network_name, ref, exc_info=True)
        return False
    log.debug("cached network config %s@%s at %s", config.network_name, ref, d)
    return True


def load_cached_config(network_name: str, ref: str, cache_dir: Optional[Path] = None) -> Optional["NetworkConfig"]:
    """None when nothing is cached; SchemaError when the cached file is unreadable."""
    from .canonical import parse_network_config

    path = entry_dir(network_name, ref, cache_dir) / "config.json"
    if not path.exists():
        return None
    try:
        data = path.read_bytes()
    except OSError as e:
        raise SchemaError(f"failed to read cache: {e}") from e
    return parse_network_config(data)


def load_cache_meta(network_name: str, ref: str, cache_dir: Optional[Path] = None) -> Optional[dict]:
    return read_json(entry_dir(network_name, ref, cache_dir) / "meta.json")
