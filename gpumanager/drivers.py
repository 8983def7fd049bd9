"""Loads the built-in GPU tree drivers and creates trees by driver name."""

from __future__ import annotations

from typing import Any

from gpumanager import dummy, tree  # noqa: F401  imported for their registrations
from gpumanager.registry import GPUTree, new_func_for_name

_BUILTIN_DRIVERS = ("dummy", "nvidia")


def available_drivers() -> list[str]:
    """Names of the built-in drivers that are registered."""
    return [name for name in _BUILTIN_DRIVERS if new_func_for_name(name) is not None]


def create_tree(name: str, config: Any) -> GPUTree:
    """Create the tree of the named driver; raise KeyError if unknown."""
    factory = new_func_for_name(name)
    if factory is None:
        raise KeyError(f"no GPU tree registered for driver {name!r}")
    return factory(config)