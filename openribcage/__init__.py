"""openribcage — A2A protocol client: discovery, task calls, agent registry."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("openribcage")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
