"""
Path utilities for StepFlow.

Handles path resolution for both development mode and frozen (PyInstaller) executables.
- In development: paths are relative to the project root
- When frozen: paths are relative to the executable location

config.json lives NEXT TO the executable, not bundled inside. The
STEPFLOW_CONFIG environment variable points somewhere else if set.
"""

import os
import sys
from pathlib import Path


def get_app_dir() -> Path:
    """
    Get the application directory.

    - In development: the project root (parent of stepflow/)
    - When frozen: the directory containing the executable
    """
    if getattr(sys, 'frozen', False):
        return Path(sys.executable).parent
    else:
        return Path(__file__).parent.parent


def get_config_path() -> Path:
    """Get the path to the config file (layout tuning, UI preferences)."""
    override = os.environ.get("STEPFLOW_CONFIG")
    if override:
        return Path(override)
    return get_app_dir() / "config.json"
