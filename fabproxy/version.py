"""
Version information for fabproxy.

Installed distributions report their metadata version; a source checkout
reads ``[project].version`` from its pyproject.toml.
"""
import logging
from importlib import metadata
from pathlib import Path

import tomli

logger = logging.getLogger(__name__)

DISTRIBUTION = "fabproxy"
DEFAULT_VERSION = "0.1.0"
PYPROJECT = Path(__file__).resolve().parent.parent / "pyproject.toml"


def source_tree_version(pyproject: Path = PYPROJECT) -> str:
    """Version declared in ``pyproject``, or DEFAULT_VERSION if it has none"""
    try:
        with pyproject.open("rb") as f:
            return tomli.load(f)["project"]["version"]
    except (OSError, KeyError, tomli.TOMLDecodeError) as e:
        logger.debug(f"No project version in {pyproject}: {e}")
        return DEFAULT_VERSION


def get_version() -> str:
    try:
        return metadata.version(DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return source_tree_version()


__version__ = get_version()
