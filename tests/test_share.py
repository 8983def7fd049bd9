import pytest

from gpumanager.node import DeviceMeta, NvidiaNode
from gpumanager.share import ShareMode
from gpumanager.tree import HUNDRED_CORE, new_nvidia_tree

SIX_CARDS = """    GPU0    GPU1    GPU2    GPU3    GPU4    GPU5
GPU0      X      PIX     PHB     PHB     SOC     SOC
GPU1     PIX      X      PHB     PHB     SOC     SOC
GPU2     PHB     PHB      X      PIX     SOC     SOC
GPU3     PHB     PHB     PIX      X      SOC     SOC
GPU4     SOC     SOC     SOC     SOC      X      PIX
GPU5     SOC     SOC     SOC     SOC     PIX      X
"""


def names(nodes):
    return [n.minor_name() for n in nodes]


@pytest.fixture
def six_tree():
    tree = new_nvidia_tree(None)
    tree.init(SIX_CARDS)
    for leaf in tree.leaves():
        leaf.allocatable_meta.cores = HUNDRED_CORE
        leaf.allocatable_meta.memory = 1024
    return tree


def test_share_prefers_partly_used_card(six_tree):
    algo = ShareMode(six_tree)
    cores = int(0.5 * HUNDRED_CORE)
    assert names(algo.evaluate(cores, 0)) == ["/dev/nvidia0"]

    six_tree.mark_occupied(NvidiaNode(meta=DeviceMeta(minor_id=0)), cores, 0)

    cores = int(0.6 * HUNDRED_CORE)
    assert names(algo.evaluate(cores, 0)) == ["/dev/nvidia1"]


def test_share_reuses_card_with_room(six_tree):
    algo = ShareMode(six_tree)
    six_tree.mark_occupied(NvidiaNode(meta=DeviceMeta(minor_id=3)), 50, 0)
    assert names(algo.evaluate(50, 0)) == ["/dev/nvidia3"]


def test_share_memory_too_large_gives_nothing(six_tree):
    algo = ShareMode(six_tree)
    assert algo.evaluate(50, 2048) == []


def test_share_cores_too_large_gives_nothing(six_tree):
    algo = ShareMode(six_tree)
    assert algo.evaluate(HUNDRED_CORE + 1, 0) == []


def test_share_leaves_tree_order_alone(six_tree):
    six_tree.mark_occupied(NvidiaNode(meta=DeviceMeta(minor_id=5)), 50, 0)
    ShareMode(six_tree).evaluate(10, 0)
    assert names(six_tree.leaves()) == [f"/dev/nvidia{i}" for i in range(6)]