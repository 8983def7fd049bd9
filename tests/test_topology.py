import pytest

from gpumanager.topology import LEVEL_STEP, TopologyLevel, parse_topology_level


@pytest.mark.parametrize(
    "cell, level",
    [
        ("PIX", TopologyLevel.SINGLE),
        ("PXB", TopologyLevel.MULTIPLE),
        ("PHB", TopologyLevel.HOSTBRIDGE),
        ("SOC", TopologyLevel.CPU),
        ("GPU0", TopologyLevel.INTERNAL),
        ("GPU5", TopologyLevel.INTERNAL),
    ],
)
def test_known_cells(cell, level):
    assert parse_topology_level(cell) is level


@pytest.mark.parametrize("cell", ["X", "x", "SYS", "", "pix"])
def test_unknown_cells(cell):
    assert parse_topology_level(cell) is TopologyLevel.UNKNOWN


def test_levels_are_spaced_by_step():
    parsed = [parse_topology_level(cell) for cell in ["GPU1", "PIX", "PXB", "PHB", "SOC"]]
    gaps = {int(b) - int(a) for a, b in zip(parsed, parsed[1:])}
    assert gaps == {LEVEL_STEP}
    assert parsed[0] is TopologyLevel.INTERNAL

    ordered = sorted(TopologyLevel)
    assert {int(b) - int(a) for a, b in zip(ordered, ordered[1:])} == {LEVEL_STEP}
    assert ordered[0] is TopologyLevel.INTERNAL
    assert ordered[-1] is parse_topology_level("X")