"""Default input locations for both dev and PyInstaller-frozen environments.

Relative defaults (``csv_data/``, ``models/``) are resolved against the
project root in development and against the executable's directory when
bundled.
"""

from __future__ import annotations

import sys
from pathlib import Path


def is_frozen() -> bool:
    """Return ``True`` when running inside a PyInstaller bundle."""
    return getattr(sys, "frozen", False) is True


def get_base_dir() -> Path:
    if is_frozen():
        return Path(sys.executable).resolve().parent
    # src/ftsim/runtime_paths.py -> src/ftsim -> src -> project root
    return Path(__file__).resolve().parent.parent.parent


def get_data_dir(relative: str = "csv_data") -> Path:
    """Return the default directory holding the displacement CSV files."""
    return get_base_dir() / relative


def get_mesh_dir(relative: str = "models") -> Path:
    """Return the default directory holding the electrode OBJ meshes."""
    return get_base_dir() / relative
