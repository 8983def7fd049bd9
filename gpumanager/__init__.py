"""GPU topology trees, allocation strategies and manager settings."""

__version__ = "0.1.0"

__all__ = [
    "app",
    "config",
    "drivers",
    "dummy",
    "fragment",
    "link",
    "node",
    "options",
    "registry",
    "share",
    "topology",
    "tree",
]