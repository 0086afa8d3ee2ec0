"""Locations of bundled and user-supplied rule directories."""

import os
import sys
from pathlib import Path
from typing import Optional

from .core.constants import RULES_DIR


def get_resource_path(relative_path: str) -> Path:
    """Resolve a path relative to the project root.

    Frozen builds unpack data under sys._MEIPASS instead of the source tree.
    """
    if hasattr(sys, '_MEIPASS'):
        base_path = Path(sys._MEIPASS)  # pyright: ignore[reportAttributeAccessIssue]
    else:
        base_path = Path(__file__).parent.parent

    return base_path / relative_path


def get_rules_root(override: Optional[str] = None) -> Path:
    """Directory holding per-resource rule folders.

    An explicit override or the AUTOMAPPER_RULES environment variable take
    precedence over the bundled rules directory.
    """
    if override:
        return Path(override)
    env_root = os.environ.get("AUTOMAPPER_RULES")
    if env_root:
        return Path(env_root)
    return get_resource_path(RULES_DIR)
