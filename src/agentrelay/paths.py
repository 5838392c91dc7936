"""
XDG base-directory lookup for agentrelay's config and data directories.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

APP_DIR_NAME = "agentrelay"


def config_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """`$XDG_CONFIG_HOME/agentrelay`, falling back to `~/.config/agentrelay`."""
    env = os.environ if environ is None else environ
    base = env.get("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / APP_DIR_NAME


def data_dir(environ: Optional[Mapping[str, str]] = None) -> Path:
    """`$XDG_DATA_HOME/agentrelay`, falling back to `~/.local/share/agentrelay`."""
    env = os.environ if environ is None else environ
    base = env.get("XDG_DATA_HOME")
    root = Path(base) if base else Path.home() / ".local" / "share"
    return root / APP_DIR_NAME


__all__ = ["APP_DIR_NAME", "config_dir", "data_dir"]
