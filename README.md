# gpumanager

`gpumanager` models the GPUs of a machine as a topology tree and picks
cards for workloads that ask for GPU cores and memory.

The tree is built from the link matrix printed by `nvidia-smi topo -m`.
Cards that share a PCIe switch, a host bridge or a CPU socket end up
under a common parent, so an allocator can prefer cards that sit close
to each other. Every card offers 100 cores.

## Modules

- `gpumanager.topology`: link levels (`TopologyLevel`) and
  `parse_topology_level`, which maps the matrix labels `PIX`, `PXB`,
  `PHB`, `SOC` and `GPUn` to a level (anything else is `UNKNOWN`).
- `gpumanager.node`: `NvidiaNode` with its `DeviceMeta` and
  `SchedulerCache`; the orderings `by_type`, `by_available`, `by_id`,
  `by_minor_id`, `by_memory`, `by_pids`, `by_allocatable_cores` and
  `by_allocatable_memory`; `sort_nodes(nodes, *orderings)`, which sorts
  in place with each ordering breaking the ties of the one before, and
  `print_sort`.
- `gpumanager.tree`: `NvidiaTree`, created with `new_nvidia_tree(config)`.
  `init(text)` builds the tree, `mark_occupied` and `mark_free` take and
  give back cores and memory, `query` finds a card by device name
  (`/dev/nvidiaN`), `available`, `total`, `leaves` and `root` inspect the
  tree and `print_graph` renders it as indented text.
- `gpumanager.registry`: the abstract `GPUTree` and a registry of tree
  factories (`register`, `new_func_for_name`); the first registration
  of a name wins.
- `gpumanager.dummy`: `DummyTree`, a tree with no devices, registered as
  `dummy`.
- `gpumanager.drivers`: `available_drivers()` and
  `create_tree(name, config)`, which raises `KeyError` for an unknown
  driver.
- `gpumanager.fragment`, `gpumanager.link`, `gpumanager.share`: the
  allocation strategies `FragmentMode`, `LinkMode` and `ShareMode`.
- `gpumanager.config`, `gpumanager.options`, `gpumanager.app`: the
  settings (`Config`, `ExtraConfig`, `Options`), command-line parsing
  (`build_parser`, `parse_options`, `parse_duration`,
  `normalize_flag_name`) and turning options into a `Config`
  (`build_config`, `parse_node_labels`).

## Example

```python
from gpumanager.tree import new_nvidia_tree
from gpumanager.fragment import FragmentMode
from gpumanager.link import LinkMode

matrix = """\
    GPU0    GPU1    GPU2    GPU3    GPU4    GPU5
GPU0      X      PIX     PHB     PHB     SOC     SOC
GPU1     PIX      X      PHB     PHB     SOC     SOC
GPU2     PHB     PHB      X      PIX     SOC     SOC
GPU3     PHB     PHB     PIX      X      SOC     SOC
GPU4     SOC     SOC     SOC     SOC      X      PIX
GPU5     SOC     SOC     SOC     SOC     PIX      X
"""

tree = new_nvidia_tree(None)
tree.init(matrix)
print(tree.available())          # 6

# Two whole cards, taken from the most fragmented branch.
picked = FragmentMode(tree).evaluate(200, 0)
print([n.minor_name() for n in picked])   # ['/dev/nvidia4', '/dev/nvidia5']

# Occupy a card, then ask for three closely linked cards.
tree.mark_occupied(tree.query("/dev/nvidia4"), 200, 0)
picked = LinkMode(tree).evaluate(300, 0)
print([n.minor_name() for n in picked])

print(tree.print_graph())
```

`FragmentMode` and `LinkMode` count whole cards (cores divided by 100)
and return an empty list when the request cannot be met. `ShareMode`
returns the single card with the fewest free cores whose free cores and
memory still cover the request, or an empty list.

`mark_occupied` with 100 cores or more sets the card's free cores and
memory to zero; a smaller amount is subtracted. Either way the card is
taken out of its parents' masks. `mark_free` adds back (or, at 100
cores or more, restores the card to its full capacity) and returns the
card to its parents once all 100 cores are free.

`init` raises `ValueError` when given empty text or a matrix with more
than one card and no links between them.

## Settings

```python
from gpumanager.options import parse_options
from gpumanager.app import build_config, parse_node_labels

options = parse_options(["--driver", "nvidia", "--node-labels", "zone=a,tier=gpu"])
config = build_config(options)
print(config.node_labels)                        # {'zone': 'a', 'tier': 'gpu'}
print(parse_node_labels("zone=a,broken,x=1"))    # {'zone': 'a', 'x': '1'}
```

Flag names written with underscores are accepted in their dashed form
(`--query_port` is `--query-port`). Durations such as `5s`, `300ms` or
`1m30s` are read by `parse_duration`, which returns seconds. When
`--device-plugin-path` is not given, `build_config` uses
`/var/lib/kubelet/device-plugins/`.

## What this package does not do

- It installs no command. `parse_options` and `build_config` produce
  the settings, but nothing here starts a manager with them.
- It runs no device-plugin, display or metrics server and does not
  register with a kubelet.
- It ships no binding to the GPU driver library. `NvidiaTree` accepts
  an object following the `DeviceLibrary` protocol in
  `gpumanager.tree`; without one, `init` builds the tree from the
  topology matrix text and `update` does nothing.