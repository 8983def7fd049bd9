"""Topology tree of the NVIDIA GPUs on a node."""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from gpumanager.node import NvidiaNode, print_sort
from gpumanager.registry import GPUTree, register
from gpumanager.topology import LEVEL_STEP, TopologyLevel, parse_topology_level

log = logging.getLogger(__name__)

MAX_PROCESS = 64
HUNDRED_CORE = 100

_SPLITTER = re.compile(r"[ \t]+")

LevelMap = dict[TopologyLevel, list[NvidiaNode]]


@dataclass
class DeviceInfo:
    """Static facts about one GPU reported by a device library."""

    total_memory: int = 0
    bus_id: str = ""
    minor_id: int = 0
    uuid: str = ""


class DeviceLibrary(Protocol):
    """Access to real GPU devices."""

    def device_count(self) -> int: ...

    def device_info(self, index: int) -> DeviceInfo: ...

    def common_ancestor(self, index_a: int, index_b: int) -> TopologyLevel: ...

    def is_multi_gpu_board(self, index: int) -> bool: ...

    def running_processes(self, index: int, limit: int) -> list[tuple[int, int]]: ...

    def average_utilization(self, index: int, period: float) -> int: ...

    def reset_device(self, index: int) -> None:
        """Restore default compute mode and clear ECC counters; raise on failure."""


def _tokens(line: str) -> list[str]:
    return [token for token in _SPLITTER.split(line) if token]


def _format_pids(pids: list[int]) -> str:
    return "[" + " ".join(str(pid) for pid in pids) + "]"


def _format_node(node: NvidiaNode) -> str:
    meta, alloc = node.meta, node.allocatable_meta
    details = (
        f"pids: {_format_pids(meta.pids)}, usedMemory: {meta.used_memory}, "
        f"totalMemory: {meta.total_memory}, allocatableCores: {alloc.cores}, "
        f"allocatableMemory: {alloc.memory})\n"
    )
    if node.ntype is not TopologyLevel.INTERNAL:
        return f"{node} (aval: {node.available()}, {details}"
    return f"{node} ({details}"


class NvidiaTree(GPUTree):
    """GPU cards as leaves, grouped by how closely they are linked."""

    def __init__(self, sample_period: float = 0.0, library: Optional[DeviceLibrary] = None):
        self._lock = threading.Lock()
        self._root: Optional[NvidiaNode] = None
        self._leaves: list[NvidiaNode] = []
        self._query: dict[str, NvidiaNode] = {}
        self._library = library
        self.real_mode = False
        self.sample_period = sample_period

    def init(self, text: str) -> None:
        """Build from the device library, falling back to a topology matrix."""
        try:
            self._parse_from_library()
        except Exception as err:  # any library failure means text mode
            log.debug("Can't use nvidia library, err %s. Use text parser", err)
        else:
            self.real_mode = True
            return
        self._parse_from_text(text)

    def update(self) -> None:
        """Refresh usage from the devices; does nothing without real devices."""
        if not self.real_mode or self._library is None:
            return
        with self._lock:
            for index in range(len(self._leaves)):
                node = self._update_node(index)
                if node.pending_reset and node.allocatable_meta.cores == HUNDRED_CORE:
                    try:
                        self._reset_gpu_feature(node)
                    except Exception as err:
                        log.warning("can't reset GPU %s, %s", node.meta.bus_id, err)
                    if not node.pending_reset:
                        self._free_node(node)

                parent = node.parent
                while parent is not None:
                    parent.meta.pids = [pid for child in parent.children for pid in child.meta.pids]
                    parent.meta.used_memory = sum(c.meta.used_memory for c in parent.children)
                    parent.meta.total_memory = sum(c.meta.total_memory for c in parent.children)
                    parent = parent.parent

    def _update_node(self, index: int) -> NvidiaNode:
        processes = self._library.running_processes(index, MAX_PROCESS)
        utilization = self._library.average_utilization(index, self.sample_period)
        node = self._leaves[index]
        node.meta.pids = [pid for pid, _ in processes]
        node.meta.used_memory = sum(used for _, used in processes)
        node.meta.utilization = utilization
        return node

    def _allocate_node(self, index: int) -> NvidiaNode:
        node = NvidiaNode(tree=self, ntype=TopologyLevel.INTERNAL, mask=1 << index)
        node.meta.id = index
        return node

    def _add_node(self, node: NvidiaNode) -> None:
        self._query[node.minor_name()] = node
        self._leaves[node.meta.id] = node

    def _parse_from_library(self) -> None:
        library = self._library
        if library is None:
            raise LookupError("no device library available")
        count = library.device_count()
        log.debug("Detect %d gpu cards", count)
        self._query = {}
        self._leaves = [None] * count  # type: ignore[list-item]
        nodes: LevelMap = {}

        for index in range(count):
            info = library.device_info(index)
            node = self._allocate_node(index)
            node.allocatable_meta.cores = HUNDRED_CORE
            node.allocatable_meta.memory = info.total_memory
            node.meta.total_memory = info.total_memory
            node.meta.bus_id = info.bus_id
            node.meta.minor_id = info.minor_id
            node.meta.uuid = info.uuid
            self._add_node(node)

        for card_a in range(count):
            for card_b in range(card_a + 1, count):
                ntype = TopologyLevel(library.common_ancestor(card_a, card_b))
                if library.is_multi_gpu_board(card_a) and ntype is TopologyLevel.INTERNAL:
                    ntype = TopologyLevel.SINGLE
                new_node = self._join(nodes, ntype, card_a, card_b)
                if new_node is not None:
                    nodes.setdefault(ntype, []).append(new_node)

        self._build_tree(nodes)

    def _parse_from_text(self, text: str) -> None:
        # Example:
        #       GPU0 GPU1 GPU2 GPU3
        # GPU0   X   PIX  PHB  PHB
        if not text:
            raise ValueError("Can not initialize nvidia tree, no input")

        nodes: LevelMap = {}
        self._query = {}
        self._leaves = []
        for count, line in enumerate(text.splitlines()):
            if count == 0:
                num = len(_tokens(line))
                self._leaves = [None] * num  # type: ignore[list-item]
                for index in range(num):
                    node = self._allocate_node(index)
                    node.meta.minor_id = index
                    self._add_node(node)
                continue

            card_a = count - 1
            for position, cell in enumerate(_tokens(line)):
                if position == 0 or position == count:
                    continue
                ntype = parse_topology_level(cell)
                new_node = self._join(nodes, ntype, card_a, position - 1)
                if new_node is not None:
                    nodes.setdefault(ntype, []).append(new_node)

        self._build_tree(nodes)

    def _join(
        self, nodes: LevelMap, ntype: TopologyLevel, index_a: int, index_b: int
    ) -> Optional[NvidiaNode]:
        mask = self._leaves[index_a].mask | self._leaves[index_b].mask
        for existing in nodes.get(ntype, []):
            if existing.mask & mask:
                existing.mask |= mask
                return None
        return NvidiaNode(tree=self, mask=mask, ntype=ntype)

    def _build_tree(self, nodes: LevelMap) -> None:
        for leaf in self._leaves:
            current = leaf
            level = int(TopologyLevel.SINGLE)
            while level <= int(TopologyLevel.SYSTEM):
                for upper in nodes.get(TopologyLevel(level), []):
                    if upper.mask & current.mask:
                        current._attach_to(upper)
                        current = upper
                        break
                level += LEVEL_STEP

        self._root = NvidiaNode(tree=self)
        first_level: list[NvidiaNode] = []
        level = int(TopologyLevel.SYSTEM)
        while level > 0:
            found = nodes.get(TopologyLevel(level))
            if found:
                first_level = found
                break
            level -= LEVEL_STEP

        if not first_level:
            log.error("No topology level found at %d", level)
            if len(self._leaves) == 1:
                only = self._leaves[0]
                self._root.mask |= only.mask
                only._attach_to(self._root)
                self._root.children.append(only)
                return
            raise ValueError("Can not initialize nvidia tree, no topology level found")

        for node in first_level:
            self._root.mask |= node.mask
            node._attach_to(self._root)

        for leaf in self._leaves:
            current = leaf.parent
            while current is not None:
                if not current.children:
                    current.children = list(current.vchildren.values())
                current = current.parent

    def available(self) -> int:
        """Number of free leaves in the tree."""
        with self._lock:
            return self._root.available()

    def mark_free(self, node: NvidiaNode, util: int, memory: int) -> None:
        """Give back cores and memory; a fully free card is returned to its parents."""
        with self._lock:
            found = self._query.get(node.minor_name())
            if found is None:
                log.debug("Can not find node with name(%s)", node.minor_name())
                return

            alloc = found.allocatable_meta
            if util >= HUNDRED_CORE:
                alloc.cores = HUNDRED_CORE
                alloc.memory = found.meta.total_memory
            else:
                alloc.cores = min(alloc.cores + util, HUNDRED_CORE)
                alloc.memory = min(alloc.memory + memory, found.meta.total_memory)

            if alloc.cores != HUNDRED_CORE:
                return
            if self.real_mode:
                found.pending_reset = True
                try:
                    self._reset_gpu_feature(found)
                except Exception as err:
                    log.warning("can't reset GPU %s, %s", found.meta.bus_id, err)
                if found.pending_reset:
                    log.warning(
                        "GPU %s has some functional error, waiting for reset", found.meta.bus_id
                    )
                    return
            self._free_node(found)

    def _free_node(self, node: NvidiaNode) -> None:
        parent = node.parent
        while parent is not None:
            parent.mask |= node.mask
            parent = parent.parent

    def mark_occupied(self, node: NvidiaNode, util: int, memory: int) -> None:
        """Take cores and memory from a card and remove it from its parents."""
        with self._lock:
            found = self._query.get(node.minor_name())
            if found is None:
                log.debug("Can not find node with name(%s)", node.minor_name())
                return

            self._occupy_node(found)
            alloc = found.allocatable_meta
            if util >= HUNDRED_CORE:
                alloc.cores = 0
                alloc.memory = 0
            else:
                alloc.cores = max(alloc.cores - util, 0)
                alloc.memory = max(alloc.memory - memory, 0)

    def _occupy_node(self, node: NvidiaNode) -> None:
        parent = node.parent
        while parent is not None:
            if parent.mask & node.mask == node.mask:
                parent.mask ^= node.mask
            parent = parent.parent

    def _reset_gpu_feature(self, node: NvidiaNode) -> None:
        if not node.pending_reset:
            return
        if not self.real_mode:
            node.pending_reset = False
            return
        # skip the reset while processes still run on the card
        if node.meta.pids or node.meta.used_memory > 0:
            node.pending_reset = False
            return
        if node.meta.bus_id and self._library is not None:
            self._library.reset_device(node.meta.id)
        node.pending_reset = False

    def leaves(self) -> list[NvidiaNode]:
        """The card nodes of the tree."""
        return self._leaves

    def total(self) -> int:
        """Number of cards."""
        return len(self._leaves)

    def root(self) -> Optional[NvidiaNode]:
        """The root node."""
        return self._root

    def query(self, name: str) -> Optional[NvidiaNode]:
        """Find a card by device file name."""
        node = self._query.get(name)
        if node is None:
            log.debug("Can not find node with name(%s)", name)
        return node

    def print_graph(self) -> str:
        """Render the tree as indented text."""
        out = [f"{self._root}:{self._root.available()}\n"]
        self._print_iter(out, self._root, int(TopologyLevel.INTERNAL))
        return "".join(out)

    def _print_iter(self, out: list[str], node: NvidiaNode, level: int) -> None:
        out.extend("|   " for _ in range(int(TopologyLevel.INTERNAL) + LEVEL_STEP, level, LEVEL_STEP))
        if level > 0:
            out.append("|---")
            out.append(_format_node(node))
        print_sort(node.children)
        for child in node.children:
            self._print_iter(out, child, level + LEVEL_STEP)


def new_nvidia_tree(config: Any) -> NvidiaTree:
    """Create an NvidiaTree, taking the sample period from config when given."""
    if config is None:
        return NvidiaTree()
    return NvidiaTree(sample_period=config.sample_period)


register("nvidia", new_nvidia_tree)