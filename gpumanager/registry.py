"""Registry of GPU tree factories by driver name."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

log = logging.getLogger(__name__)


class GPUTree(ABC):
    """A tree describing the GPUs of a node."""

    @abstractmethod
    def init(self, text: str) -> None:
        """Build the tree, using text as a fallback description."""

    @abstractmethod
    def update(self) -> None:
        """Refresh the tree from the devices."""


TreeFactory = Callable[[Any], GPUTree]

_factories: dict[str, TreeFactory] = {}


def register(name: str, factory: TreeFactory) -> None:
    """Register a factory under name; the first registration wins."""
    if name in _factories:
        return
    log.debug("Register NewFunc with name %s", name)
    _factories[name] = factory


def new_func_for_name(name: str) -> Optional[TreeFactory]:
    """Return the factory registered under name, or None."""
    factory = _factories.get(name)
    if factory is None:
        log.debug("Can not find NewFunc with name %s", name)
    return factory