"""uxkit-codex: bridges the UX research toolkit to an external AI command-line agent."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("uxkit-codex")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
