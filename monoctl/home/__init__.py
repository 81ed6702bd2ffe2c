"""Node home: layout, atomic writes, TOML patching and preflight."""

from .layout import NodeHome

__all__ = ["NodeHome"]
