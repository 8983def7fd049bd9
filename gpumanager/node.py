"""Nodes of the GPU topology tree and the orderings used to rank them."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any, Callable, Optional

from gpumanager.topology import TopologyLevel

log = logging.getLogger(__name__)

NAME_PATTERN = "/dev/nvidia{}"
MEMORY_BLOCK_SIZE = 256 * 1024 * 1024

_node_ids = itertools.count()


@dataclass
class SchedulerCache:
    """Resources of a GPU still free for allocation."""

    cores: int = 0
    memory: int = 0


@dataclass
class DeviceMeta:
    """Metadata describing a GPU device."""

    id: int = 0
    minor_id: int = 0
    used_memory: int = 0
    total_memory: int = 0
    pids: list[int] = field(default_factory=list)
    bus_id: str = ""
    utilization: int = 0
    uuid: str = ""


def _fresh_meta() -> DeviceMeta:
    return DeviceMeta(id=next(_node_ids))


_LABELS = {
    TopologyLevel.SINGLE: "PIX",
    TopologyLevel.MULTIPLE: "PXB",
    TopologyLevel.HOSTBRIDGE: "PHB",
    TopologyLevel.CPU: "CPU",
    TopologyLevel.SYSTEM: "SYS",
}


@dataclass(eq=False)
class NvidiaNode:
    """A GPU card (leaf) or a link level grouping cards (inner node)."""

    tree: Any = field(default=None, repr=False)
    meta: DeviceMeta = field(default_factory=_fresh_meta)
    allocatable_meta: SchedulerCache = field(default_factory=SchedulerCache)
    ntype: TopologyLevel = TopologyLevel.UNKNOWN
    mask: int = 0
    parent: Optional["NvidiaNode"] = field(default=None, repr=False)
    children: list["NvidiaNode"] = field(default_factory=list, repr=False)
    pending_reset: bool = False
    vchildren: dict[int, "NvidiaNode"] = field(default_factory=dict, repr=False)

    def _attach_to(self, parent: "NvidiaNode") -> None:
        self.parent = parent
        parent.vchildren[self.meta.id] = self

    def minor_name(self) -> str:
        """Device file name of this node."""
        return NAME_PATTERN.format(self.meta.minor_id)

    def available_leaves(self) -> list["NvidiaNode"]:
        """Leaves under this node that are free, lowest index first."""
        leaves = []
        mask = self.mask
        if mask and self.tree is None:
            raise ValueError("node is not part of a tree")
        all_leaves = self.tree.leaves() if mask else []
        while mask:
            index = (mask & -mask).bit_length() - 1
            leaf = all_leaves[index]
            log.debug("Pick up %d mask %s", index, bin(leaf.mask))
            leaves.append(leaf)
            mask &= mask - 1
        return leaves

    def available(self) -> int:
        """Number of free leaves under this node."""
        return bin(self.mask).count("1")

    def __str__(self) -> str:
        if self.ntype is TopologyLevel.INTERNAL:
            return f"GPU{self.meta.id}"
        return _LABELS.get(self.ntype, "ROOT")


LessFunc = Callable[[NvidiaNode, NvidiaNode], bool]


def by_type(p1: NvidiaNode, p2: NvidiaNode) -> bool:
    return int(p1.ntype) < int(p2.ntype)


def by_available(p1: NvidiaNode, p2: NvidiaNode) -> bool:
    return p1.available() < p2.available()


def by_id(p1: NvidiaNode, p2: NvidiaNode) -> bool:
    return p1.meta.id < p2.meta.id


def by_minor_id(p1: NvidiaNode, p2: NvidiaNode) -> bool:
    return p1.meta.minor_id < p2.meta.minor_id


def by_memory(p1: NvidiaNode, p2: NvidiaNode) -> bool:
    return p1.meta.used_memory < p2.meta.used_memory


def by_pids(p1: NvidiaNode, p2: NvidiaNode) -> bool:
    return len(p1.meta.pids) < len(p2.meta.pids)


def by_allocatable_cores(p1: NvidiaNode, p2: NvidiaNode) -> bool:
    return p1.allocatable_meta.cores < p2.allocatable_meta.cores


def by_allocatable_memory(p1: NvidiaNode, p2: NvidiaNode) -> bool:
    return (
        p1.allocatable_meta.memory // MEMORY_BLOCK_SIZE
        < p2.allocatable_meta.memory // MEMORY_BLOCK_SIZE
    )


def sort_nodes(nodes: list[NvidiaNode], *args: LessFunc) -> None:
    """Sort nodes in place, each ordering breaking ties left by the one before."""
    if not args:
        raise ValueError("at least one ordering is required")

    def compare(a: NvidiaNode, b: NvidiaNode) -> int:
        for less in args:
            if less(a, b):
                return -1
            if less(b, a):
                return 1
        return 0

    nodes.sort(key=cmp_to_key(compare))


def print_sort(nodes: list[NvidiaNode]) -> None:
    """Sort nodes in place in the order used for printing."""
    sort_nodes(nodes, by_type, by_available, by_minor_id)