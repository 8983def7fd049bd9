"""Allocation that fills fragmented parts of the GPU tree first."""

from __future__ import annotations

import logging

from gpumanager.node import (
    NvidiaNode,
    by_allocatable_memory,
    by_available,
    by_minor_id,
    by_pids,
    sort_nodes,
)
from gpumanager.tree import HUNDRED_CORE, NvidiaTree

log = logging.getLogger(__name__)


def _card_count(cores: int) -> int:
    """Whole cards in a core request, truncating toward zero."""
    whole = abs(cores) // HUNDRED_CORE
    return whole if cores >= 0 else -whole


class FragmentMode:
    """Pick whole cards from the most fragmented subtree that still fits.

    Using fragmented nodes first leaves well connected groups of cards
    intact for later requests.
    """

    def __init__(self, tree: NvidiaTree):
        self.tree = tree

    def evaluate(self, cores: int, memory: int = 0) -> list[NvidiaNode]:
        """Return the cards to use, or an empty list if the request can't be met."""
        num = _card_count(cores)
        candidate = self.tree.root()
        previous = None

        while previous is not candidate:
            previous = candidate
            sort_nodes(
                candidate.children, by_available, by_allocatable_memory, by_pids, by_minor_id
            )
            for node in candidate.children:
                if not node.children or node.available() < num:
                    continue
                candidate = node
                log.debug("Choose id %d, mask %s", candidate.meta.id, bin(candidate.mask))
                break

        picked = []
        for leaf in candidate.available_leaves():
            if num == 0:
                break
            log.debug("Pick up %d mask %s", leaf.meta.id, bin(leaf.mask))
            picked.append(leaf)
            num -= 1

        return [] if num > 0 else picked