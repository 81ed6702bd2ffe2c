"""
Atomic file writes for node homes and the network cache.

- temp file in the target directory, fsync, os.replace, directory fsync
- explicit file / directory modes (config files are 0644, dirs 0755)
- read_json returns None for missing or unreadable documents
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

JsonDict = Dict[str, Any]
PathLike = Union[str, Path]

FILE_MODE = 0o644
DIR_MODE = 0o755


def ensure_dir(p: PathLike, mode: int = DIR_MODE) -> Path:
    p = Path(p)
    if not p.is_dir():
        p.mkdir(parents=True, exist_ok=True, mode=mode)
        # mkdir's mode is masked by the umask
        os.chmod(p, mode)
    return p


def _fsync_dir(dir_path: Path) -> None:
    try:
        fd = os.open(str(dir_path), os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


def atomic_write_bytes(path: PathLike, data: bytes, mode: int = FILE_MODE, dir_mode: int = DIR_MODE) -> None:
    path = Path(path)
    ensure_dir(path.parent, dir_mode)

    fd, tmp_name = tempfile.mkstemp(prefix=path.name + ".", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600
        os.chmod(tmp_path, mode)
        os.replace(str(tmp_path), str(path))
        _fsync_dir(path.parent)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def atomic_write_text(path: PathLike, text: str, mode: int = FILE_MODE) -> None:
    atomic_write_bytes(path, text.encode("utf-8"), mode=mode)


def json_dumps(obj: Any) -> bytes:
    return (json.dumps(obj, ensure_ascii=False, indent=2) + "\n").encode("utf-8")


def atomic_write_json(path: PathLike, obj: Any, mode: int = FILE_MODE) -> None:
    atomic_write_bytes(path, json_dumps(obj), mode=mode)


def read_json(path: PathLike) -> Optional[JsonDict]:
    path = Path(path)
    if not path.exists():
        return None
    try:
        obj = json.loads(path.read_bytes().decode("utf-8"))
    except (OSError, ValueError):
        return None
    return obj if isinstance(obj, dict) else None
