"""
monoctl core: network join pipeline and config integrity for monod node homes.

Keep this module lightweight. Submodules are imported where they are used so a
CLI shell can import the package without pulling in requests or pydantic.
"""

__version__ = "0.4.0"

__all__ = ["__version__"]
