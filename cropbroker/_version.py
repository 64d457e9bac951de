"""Centralized version management for the crop brokerage backend."""

from importlib import metadata
from pathlib import Path

# VERSION sits at the repository root, next to pyproject.toml
_version_file = Path(__file__).parent.parent / "VERSION"


def _read_version() -> str:
    if _version_file.exists():
        return _version_file.read_text().strip()
    # Installed without the source tree
    try:
        return metadata.version("cropbroker")
    except metadata.PackageNotFoundError:
        return "0.0.0"


VERSION = _read_version()
