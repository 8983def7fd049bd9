import pytest

from gpumanager.node import (
    MEMORY_BLOCK_SIZE,
    DeviceMeta,
    NvidiaNode,
    SchedulerCache,
    by_allocatable_cores,
    by_allocatable_memory,
    by_available,
    by_id,
    by_memory,
    by_minor_id,
    by_pids,
    by_type,
    print_sort,
    sort_nodes,
)
from gpumanager.topology import TopologyLevel


class _Tree:
    def __init__(self, count):
        self._leaves = [
            NvidiaNode(tree=self, meta=DeviceMeta(id=i, minor_id=i), ntype=TopologyLevel.INTERNAL, mask=1 << i)
            for i in range(count)
        ]

    def leaves(self):
        return self._leaves


def test_minor_name():
    node = NvidiaNode(meta=DeviceMeta(minor_id=4))
    assert node.minor_name() == "/dev/nvidia4"


def test_fresh_nodes_get_increasing_ids():
    first, second = NvidiaNode(), NvidiaNode()
    assert second.meta.id > first.meta.id


def test_available_counts_mask_bits():
    node = NvidiaNode(mask=0b101101)
    assert node.available() == 4
    assert NvidiaNode(mask=0).available() == 0


def test_available_leaves_follow_mask():
    tree = _Tree(6)
    parent = NvidiaNode(tree=tree, mask=0b110010)
    leaves = parent.available_leaves()
    assert leaves == [tree.leaves()[1], tree.leaves()[4], tree.leaves()[5]]
    assert len(leaves) == parent.available()


def test_available_leaves_empty_mask():
    assert NvidiaNode(mask=0).available_leaves() == []


def test_available_leaves_without_tree():
    with pytest.raises(ValueError):
        NvidiaNode(mask=1).available_leaves()


@pytest.mark.parametrize(
    "level, label",
    [
        (TopologyLevel.SINGLE, "PIX"),
        (TopologyLevel.MULTIPLE, "PXB"),
        (TopologyLevel.HOSTBRIDGE, "PHB"),
        (TopologyLevel.CPU, "CPU"),
        (TopologyLevel.SYSTEM, "SYS"),
        (TopologyLevel.UNKNOWN, "ROOT"),
    ],
)
def test_str_of_link_levels(level, label):
    assert str(NvidiaNode(ntype=level)) == label


def test_str_of_card():
    node = NvidiaNode(meta=DeviceMeta(id=5), ntype=TopologyLevel.INTERNAL)
    assert str(node) == "GPU5"


def test_attach_to_records_parent():
    parent, child = NvidiaNode(), NvidiaNode()
    child._attach_to(parent)
    assert child.parent is parent
    assert parent.vchildren[child.meta.id] is child


def test_less_functions_are_strict():
    small = NvidiaNode(
        meta=DeviceMeta(id=1, minor_id=1, used_memory=1, pids=[1]),
        allocatable_meta=SchedulerCache(cores=10, memory=MEMORY_BLOCK_SIZE),
        ntype=TopologyLevel.INTERNAL,
        mask=0b1,
    )
    large = NvidiaNode(
        meta=DeviceMeta(id=2, minor_id=2, used_memory=2, pids=[1, 2]),
        allocatable_meta=SchedulerCache(cores=20, memory=2 * MEMORY_BLOCK_SIZE),
        ntype=TopologyLevel.SINGLE,
        mask=0b11,
    )
    for less in (by_type, by_available, by_id, by_minor_id, by_memory, by_pids,
                 by_allocatable_cores, by_allocatable_memory):
        assert less(small, large)
        assert not less(large, small)
        assert not less(small, small)


def test_allocatable_memory_compares_whole_blocks():
    a = NvidiaNode(allocatable_meta=SchedulerCache(memory=MEMORY_BLOCK_SIZE))
    b = NvidiaNode(allocatable_meta=SchedulerCache(memory=MEMORY_BLOCK_SIZE + 1))
    assert not by_allocatable_memory(a, b)
    assert not by_allocatable_memory(b, a)


def test_sort_nodes_breaks_ties_in_order():
    nodes = [
        NvidiaNode(meta=DeviceMeta(minor_id=3), mask=0b1),
        NvidiaNode(meta=DeviceMeta(minor_id=1), mask=0b11),
        NvidiaNode(meta=DeviceMeta(minor_id=2), mask=0b1),
    ]
    expected = [nodes[2], nodes[0], nodes[1]]
    sort_nodes(nodes, by_available, by_minor_id)
    assert nodes == expected


def test_sort_nodes_needs_an_ordering():
    with pytest.raises(ValueError):
        sort_nodes([NvidiaNode()])


def test_print_sort_puts_cards_before_links():
    link = NvidiaNode(meta=DeviceMeta(minor_id=0), ntype=TopologyLevel.SINGLE, mask=0b11)
    card_b = NvidiaNode(meta=DeviceMeta(minor_id=1), ntype=TopologyLevel.INTERNAL, mask=0b10)
    card_a = NvidiaNode(meta=DeviceMeta(minor_id=0), ntype=TopologyLevel.INTERNAL, mask=0b01)
    nodes = [link, card_b, card_a]
    print_sort(nodes)
    assert nodes == [card_a, card_b, link]