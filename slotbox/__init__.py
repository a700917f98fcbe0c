"""slotbox - Per-project development containers with isolated assistant slots."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("slotbox-cli")
except PackageNotFoundError:
    # Package not installed, use fallback for development
    __version__ = "0.0.0+dev"
