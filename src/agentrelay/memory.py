"""
Persistent per-agent memory stored as an append-only markdown log.

Each entry looks like::

    ## 2026-01-02T15:04:05Z
    **Task:** summarize the changelog
    **Result:** The changelog lists three fixes...

Entries are loaded back into an agent's system prompt on later runs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from .exceptions import MemoryStoreError

ENTRY_PREFIX = "## "
RESULT_LIMIT = 1000

WallClock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MemoryStore:
    """
    Reads and appends agent memory files.

    Example:
        >>> store = MemoryStore(data_dir=Path("/tmp/agentrelay"))
        >>> path = store.file_path("helper")
        >>> store.append_entry(path, "say hello", "hello")
        >>> store.count_entries(path)
        1
    """

    def __init__(self, data_dir: Path, clock: Optional[WallClock] = None):
        """
        Args:
            data_dir: Directory holding the default `memory/` folder.
            clock: Source of entry timestamps. Defaults to the current UTC time.
        """
        self.data_dir = data_dir
        self._clock = clock or _utc_now

    def file_path(self, agent_name: str, custom_path: str = "") -> Path:
        """Custom path when configured, otherwise `<data_dir>/memory/<agent>.md`."""
        if custom_path:
            return Path(custom_path).expanduser()
        return self.data_dir / "memory" / f"{agent_name}.md"

    def append_entry(self, path: Path, task: str, result: str) -> None:
        """
        Append one timestamped entry, creating parent directories as needed.

        Raises:
            MemoryStoreError: If the file cannot be written.
        """
        timestamp = self._clock().astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        task = task.replace("\n", " ") if task else "(none)"
        if not result:
            result = "(none)"
        elif len(result) > RESULT_LIMIT:
            result = result[:RESULT_LIMIT] + "..."

        entry = f"{ENTRY_PREFIX}{timestamp}\n**Task:** {task}\n**Result:** {result}\n\n"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("a", encoding="utf-8") as f:
                f.write(entry)
        except OSError as exc:
            raise MemoryStoreError(f"failed to write memory entry: {exc}") from exc

    def load_entries(self, path: Path, last_n: int = 0) -> str:
        """
        Return memory text, or only the last `last_n` entries when `last_n` > 0.

        A missing file is an empty memory.

        Raises:
            MemoryStoreError: If the file exists but cannot be read.
        """
        content = self._read(path)
        if not content or last_n <= 0:
            return content

        lines = content.splitlines(keepends=True)
        starts = [i for i, line in enumerate(lines) if line.startswith(ENTRY_PREFIX)]
        if not starts:
            return ""
        first = starts[max(0, len(starts) - last_n)]
        return "".join(lines[first:])

    def count_entries(self, path: Path) -> int:
        content = self._read(path)
        return sum(1 for line in content.split("\n") if line.startswith(ENTRY_PREFIX))

    @staticmethod
    def _read(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""
        except (OSError, UnicodeDecodeError) as exc:
            raise MemoryStoreError(f"failed to read memory file: {exc}") from exc


__all__ = ["MemoryStore", "ENTRY_PREFIX", "RESULT_LIMIT"]
