"""Runtime configuration of the manager."""

from __future__ import annotations

import queue
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


@dataclass
class Config:
    """Options the manager needs at run time. Durations are in seconds."""

    driver: str = ""
    extra_config_path: str = ""
    query_port: int = 0
    query_addr: str = ""
    kube_config: str = ""
    sample_period: float = 0.0
    hostname: str = ""
    node_labels: dict[str, str] = field(default_factory=dict)
    virtual_manager_path: str = ""
    device_plugin_path: str = ""
    volume_config_path: str = ""
    enable_share: bool = False
    allocation_check_period: float = 0.0
    checkpoint_path: str = ""
    container_runtime_endpoint: str = ""
    cgroup_driver: str = ""
    request_timeout: float = 0.0
    vcuda_requests_queue: Optional[queue.Queue] = None


@dataclass
class ExtraConfig:
    """Extra options beyond Config, read from a JSON document."""

    devices: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ExtraConfig":
        """Build from a decoded JSON object; raise ValueError on bad shapes."""
        if not isinstance(data, Mapping):
            raise ValueError("extra config must be an object")
        devices = data.get("devices")
        if devices is None:
            return cls()
        if not isinstance(devices, list) or not all(isinstance(d, str) for d in devices):
            raise ValueError("devices must be a list of strings")
        return cls(devices=list(devices))

    def to_dict(self) -> dict[str, Any]:
        """Encode as a JSON object, leaving out an empty device list."""
        return {"devices": list(self.devices)} if self.devices else {}