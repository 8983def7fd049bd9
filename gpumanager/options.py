"""Command line options of the manager."""

from __future__ import annotations

import argparse
import re
import sys
from dataclasses import dataclass, fields
from typing import Optional, Sequence

DEFAULT_DRIVER = "nvidia"
DEFAULT_QUERY_PORT = 5678
DEFAULT_SAMPLE_PERIOD = 1
DEFAULT_VIRTUAL_MANAGER_PATH = "/etc/gpu-manager/vm"
DEFAULT_ALLOCATION_CHECK_PERIOD = 30
DEFAULT_CHECKPOINT_PATH = "/etc/gpu-manager/checkpoint"
DEFAULT_CONTAINER_RUNTIME_ENDPOINT = "/run/containerd/containerd.sock"
DEFAULT_CGROUP_DRIVER = "systemd"


@dataclass
class Options:
    """Settings taken from the command line. Durations are in seconds."""

    driver: str = DEFAULT_DRIVER
    extra_path: str = ""
    volume_config_path: str = ""
    query_port: int = DEFAULT_QUERY_PORT
    query_addr: str = "localhost"
    kube_config_file: str = ""
    sample_period: int = DEFAULT_SAMPLE_PERIOD
    node_labels: str = ""
    hostname_override: str = ""
    virtual_manager_path: str = DEFAULT_VIRTUAL_MANAGER_PATH
    device_plugin_path: str = ""
    enable_share: bool = False
    allocation_check_period: int = DEFAULT_ALLOCATION_CHECK_PERIOD
    checkpoint_path: str = DEFAULT_CHECKPOINT_PATH
    container_runtime_endpoint: str = DEFAULT_CONTAINER_RUNTIME_ENDPOINT
    cgroup_driver: str = DEFAULT_CGROUP_DRIVER
    request_timeout: float = 5.0
    wait_timeout: float = 60.0
    verbosity: int = 0


def normalize_flag_name(name: str) -> str:
    """Accept underscores in flag names by turning them into dashes."""
    return name.replace("_", "-")


_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(text: str) -> float:
    """Parse a duration such as "1m30s" or "300ms" into seconds."""
    body = text
    sign = 1.0
    if body and body[0] in "+-":
        if body[0] == "-":
            sign = -1.0
        body = body[1:]
    if body == "0":
        return 0.0
    if not body:
        raise ValueError(f"invalid duration {text!r}")

    total = 0.0
    position = 0
    while position < len(body):
        match = _DURATION_PART.match(body, position)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _UNITS[match.group(2)]
        position = match.end()
    return sign * total


_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def _parse_bool(text: str) -> bool:
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f"invalid boolean {text!r}")


def build_parser(options: Optional[Options] = None) -> argparse.ArgumentParser:
    """Build a parser whose defaults come from options."""
    opt = options if options is not None else Options()
    parser = argparse.ArgumentParser(prog="gpu-manager", allow_abbrev=False)
    add = parser.add_argument

    add("--driver", dest="driver", default=opt.driver, help="The driver name for manager")
    add("--extra-config", dest="extra_path", default=opt.extra_path,
        help="The extra config file location")
    add("--volume-config", dest="volume_config_path", default=opt.volume_config_path,
        help="The volume config file location")
    add("--query-port", dest="query_port", type=int, default=opt.query_port,
        help="port for query statistics information")
    add("--query-addr", dest="query_addr", default=opt.query_addr,
        help="address for query statistics information")
    add("--kubeconfig", dest="kube_config_file", default=opt.kube_config_file,
        help="Path to kubeconfig file with authorization information.")
    add("--sample-period", dest="sample_period", type=int, default=opt.sample_period,
        help="Sample period for each card, unit second")
    add("--node-labels", dest="node_labels", default=opt.node_labels,
        help="automated label for this node, if empty, node will be only labeled by gpu model")
    add("--hostname-override", dest="hostname_override", default=opt.hostname_override,
        help="If non-empty, will use this string as identification instead of the hostname.")
    add("--virtual-manager-path", dest="virtual_manager_path", default=opt.virtual_manager_path,
        help="configuration path for virtual manager store files")
    add("--device-plugin-path", dest="device_plugin_path", default=opt.device_plugin_path,
        help="the path for kubelet receive device plugin registration")
    add("--checkpoint-path", dest="checkpoint_path", default=opt.checkpoint_path,
        help="configuration path for checkpoint store file")
    add("--share-mode", dest="enable_share", nargs="?", const=True, type=_parse_bool,
        default=opt.enable_share, help="enable share mode allocation")
    add("--allocation-check-period", dest="allocation_check_period", type=int,
        default=opt.allocation_check_period, help="allocation check period, unit second")
    add("--container-runtime-endpoint", dest="container_runtime_endpoint",
        default=opt.container_runtime_endpoint, help="container runtime endpoint")
    add("--cgroup-driver", dest="cgroup_driver", default=opt.cgroup_driver,
        help="Driver that the kubelet uses to manipulate cgroups on the host. "
        "Possible values: 'cgroupfs', 'systemd'")
    add("--runtime-request-timeout", dest="request_timeout", type=parse_duration,
        default=opt.request_timeout,
        help="request timeout for communicating with container runtime endpoint")
    add("--wait-timeout", dest="wait_timeout", type=parse_duration, default=opt.wait_timeout,
        help="wait timeout for resource server ready")
    add("--v", dest="verbosity", type=int, default=opt.verbosity,
        help="number for the log level verbosity")
    return parser


def _normalize_args(argv: Sequence[str]) -> list[str]:
    result = []
    passthrough = False
    for arg in argv:
        if passthrough or not arg.startswith("--") or arg == "--":
            passthrough = passthrough or arg == "--"
            result.append(arg)
            continue
        name, sep, value = arg[2:].partition("=")
        result.append("--" + normalize_flag_name(name) + sep + value)
    return result


def parse_options(argv: Optional[Sequence[str]] = None) -> Options:
    """Parse command line arguments into Options; exits on bad input."""
    args = sys.argv[1:] if argv is None else argv
    namespace = build_parser(Options()).parse_args(_normalize_args(args))
    values = vars(namespace)
    return Options(**{f.name: values[f.name] for f in fields(Options)})