"""Allocation that keeps the chosen cards closely linked."""

from __future__ import annotations

import logging

from gpumanager.node import (
    NvidiaNode,
    by_allocatable_memory,
    by_available,
    by_minor_id,
    by_pids,
    by_type,
    sort_nodes,
)
from gpumanager.tree import HUNDRED_CORE, NvidiaTree

log = logging.getLogger(__name__)


class LinkMode:
    """Pick whole cards with the least connection overhead between them."""

    def __init__(self, tree: NvidiaTree):
        self.tree = tree

    def evaluate(self, cores: int, memory: int = 0) -> list[NvidiaNode]:
        """Return the cards to use, or an empty list if the request can't be met."""
        whole = abs(cores) // HUNDRED_CORE
        num = whole if cores >= 0 else -whole
        root = self.tree.root()
        found: dict[int, NvidiaNode] = {}

        for leaf in self.tree.leaves():
            node = leaf
            while node is not None and node is not root:
                log.debug("Test %d mask %s", node.meta.id, bin(node.mask))
                if node.available() < num:
                    node = node.parent
                    continue
                found[node.meta.id] = node
                log.debug("Choose %d mask %s", node.meta.id, bin(node.mask))
                break

        if not found:
            found[-1] = root

        candidates = list(found.values())
        sort_nodes(
            candidates, by_type, by_available, by_allocatable_memory, by_pids, by_minor_id
        )

        picked = []
        for leaf in candidates[0].available_leaves():
            if num == 0:
                break
            log.debug("Pick up %d mask %s", leaf.meta.id, bin(leaf.mask))
            picked.append(leaf)
            num -= 1

        return [] if num > 0 else picked