"""Turns command line options into the manager's configuration."""

from __future__ import annotations

import logging
import queue

from gpumanager.config import Config
from gpumanager.options import Options

log = logging.getLogger(__name__)

DEVICE_PLUGIN_PATH = "/var/lib/kubelet/device-plugins/"
VCUDA_QUEUE_SIZE = 10


def parse_node_labels(text: str) -> dict[str, str]:
    """Parse "k1=v1,k2=v2" into a dict, skipping malformed items."""
    labels: dict[str, str] = {}
    for item in text.split(","):
        if not item:
            continue
        parts = item.split("=", 1)
        if len(parts) == 2:
            labels[parts[0]] = parts[1]
        else:
            log.warning("malformed node labels: %s", parts)
    return labels


def build_config(options: Options) -> Config:
    """Build the run-time configuration from parsed options."""
    return Config(
        driver=options.driver,
        query_port=options.query_port,
        query_addr=options.query_addr,
        kube_config=options.kube_config_file,
        sample_period=float(options.sample_period),
        vcuda_requests_queue=queue.Queue(maxsize=VCUDA_QUEUE_SIZE),
        device_plugin_path=options.device_plugin_path or DEVICE_PLUGIN_PATH,
        virtual_manager_path=options.virtual_manager_path,
        volume_config_path=options.volume_config_path,
        enable_share=options.enable_share,
        allocation_check_period=float(options.allocation_check_period),
        checkpoint_path=options.checkpoint_path,
        container_runtime_endpoint=options.container_runtime_endpoint,
        cgroup_driver=options.cgroup_driver,
        request_timeout=options.request_timeout,
        hostname=options.hostname_override,
        extra_config_path=options.extra_path,
        node_labels=parse_node_labels(options.node_labels),
    )