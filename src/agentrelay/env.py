"""
Lightweight environment variable loader for local development.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, MutableMapping, Optional

logger = logging.getLogger(__name__)


def load_env_if_present(
    candidate_paths: Iterable[Path], environ: Optional[MutableMapping[str, str]] = None
) -> Optional[Path]:
    """
    Load key=value pairs from the first .env-style file that exists.

    Variables already present in the environment win. Returns the file that was
    loaded, if any.
    """
    env = os.environ if environ is None else environ
    for env_path in candidate_paths:
        if not env_path.is_file():
            continue
        try:
            lines = env_path.read_text().splitlines()
        except OSError as exc:
            logger.warning("Skipping unreadable env file %s: %s", env_path, exc)
            continue
        for line in lines:
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or "=" not in stripped:
                continue
            key, value = stripped.split("=", 1)
            key = key.strip()
            if key.startswith("export "):
                key = key[len("export ") :].strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in env:
                env[key] = value
        return env_path
    return None


def load_default_env() -> Optional[Path]:
    """Load from cwd/.env when present."""
    return load_env_if_present([Path.cwd() / ".env"])


__all__ = ["load_default_env", "load_env_if_present"]
