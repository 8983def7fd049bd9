"""GPU topology levels and parsing of topology matrix cells."""

from __future__ import annotations

from enum import IntEnum

LEVEL_STEP = 10


class TopologyLevel(IntEnum):
    """How closely two GPUs are connected; larger values mean further apart."""

    INTERNAL = 0
    SINGLE = 10
    MULTIPLE = 20
    HOSTBRIDGE = 30
    CPU = 40
    SYSTEM = 50
    UNKNOWN = 60


_CELL_LEVELS = {
    "PIX": TopologyLevel.SINGLE,
    "PXB": TopologyLevel.MULTIPLE,
    "PHB": TopologyLevel.HOSTBRIDGE,
    "SOC": TopologyLevel.CPU,
}


def parse_topology_level(text: str) -> TopologyLevel:
    """Map one cell of a topology matrix to its level."""
    level = _CELL_LEVELS.get(text)
    if level is not None:
        return level
    if text.startswith("GPU"):
        return TopologyLevel.INTERNAL
    return TopologyLevel.UNKNOWN