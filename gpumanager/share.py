"""Allocation that lets several workloads share one card."""

from __future__ import annotations

import logging

from gpumanager.node import (
    NvidiaNode,
    by_allocatable_cores,
    by_allocatable_memory,
    by_minor_id,
    by_pids,
    sort_nodes,
)
from gpumanager.tree import NvidiaTree

log = logging.getLogger(__name__)


class ShareMode:
    """Pick the single card with the fewest free cores that still fits."""

    def __init__(self, tree: NvidiaTree):
        self.tree = tree

    def evaluate(self, cores: int, memory: int = 0) -> list[NvidiaNode]:
        """Return one card in a list, or an empty list if none fits."""
        leaves = list(self.tree.leaves())
        sort_nodes(leaves, by_allocatable_cores, by_allocatable_memory, by_pids, by_minor_id)

        for node in leaves:
            alloc = node.allocatable_meta
            if alloc.cores >= cores and alloc.memory >= memory:
                log.debug(
                    "Pick up %d mask %s, cores: %d, memory: %d",
                    node.meta.id,
                    bin(node.mask),
                    alloc.cores,
                    alloc.memory,
                )
                return [node]
        return []