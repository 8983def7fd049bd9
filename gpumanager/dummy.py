"""A GPU tree without devices, for testing."""

from __future__ import annotations

from typing import Any

from gpumanager.registry import GPUTree, register


class DummyTree(GPUTree):
    """Tree with no devices; it only remembers its input and update count."""

    def __init__(self) -> None:
        self.source = ""
        self.updates = 0

    def init(self, text: str) -> None:
        """Remember the topology text; no devices are created."""
        self.source = text

    def update(self) -> None:
        """Count the update; there is no device state to refresh."""
        self.updates += 1


def new_dummy_tree(config: Any) -> DummyTree:
    """Create a DummyTree; the config is ignored."""
    return DummyTree()


register("dummy", new_dummy_tree)