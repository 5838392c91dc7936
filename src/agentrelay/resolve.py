"""
Runtime context resolution: working directory, context files, skill text,
the assembled system prompt, and piped stdin.
"""

from __future__ import annotations

import fnmatch
import glob
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, TextIO

from .exceptions import ResolveError

# Bytes inspected for NUL when deciding a file is binary.
_BINARY_SNIFF_BYTES = 512


@dataclass(frozen=True)
class FileContent:
    """A matched context file: path relative to the workdir plus its text."""

    path: str
    content: str


def resolve_workdir(flag_value: str = "", toml_value: str = "") -> str:
    """Flag value, then the agent's `workdir`, then the process cwd."""
    if flag_value:
        return flag_value
    if toml_value:
        return toml_value
    try:
        return os.getcwd()
    except OSError:
        return "."


def resolve_files(patterns: Iterable[str], workdir: str) -> List[FileContent]:
    """
    Expand glob patterns relative to `workdir` and read the matching text files.

    `**` matches any number of directories. Binary files, unreadable files,
    symlinks that escape the workdir, and duplicates are skipped. Results are
    sorted by relative path.

    Raises:
        ResolveError: If the workdir cannot be resolved.
    """
    patterns = list(patterns)
    if not patterns:
        return []

    try:
        root = Path(workdir).resolve()
    except OSError as exc:
        raise ResolveError(f"failed to resolve workdir: {exc}") from exc

    seen = set()
    results: List[FileContent] = []
    for pattern in patterns:
        if "**" in pattern:
            matches = _double_star_glob(pattern, root)
        else:
            matches = sorted(Path(p) for p in glob.glob(str(root / pattern)))

        for match in matches:
            if not match.is_file():
                continue
            rel = match.relative_to(root).as_posix()
            if rel in seen or _symlink_escapes(match, root):
                continue
            content = _read_text_file(match)
            if content is None:
                continue
            seen.add(rel)
            results.append(FileContent(path=rel, content=content))

    results.sort(key=lambda f: f.path)
    return results


def _double_star_glob(pattern: str, root: Path) -> List[Path]:
    pattern_parts = pattern.split("/")
    matches = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for filename in filenames:
            path = Path(dirpath) / filename
            if _match_parts(pattern_parts, path.relative_to(root).as_posix().split("/")):
                matches.append(path)
    return sorted(matches)


def _match_parts(pattern_parts: List[str], path_parts: List[str]) -> bool:
    while pattern_parts and path_parts:
        head = pattern_parts[0]
        if head == "**":
            rest = pattern_parts[1:]
            return any(_match_parts(rest, path_parts[i:]) for i in range(len(path_parts) + 1))
        if not fnmatch.fnmatchcase(path_parts[0], head):
            return False
        pattern_parts = pattern_parts[1:]
        path_parts = path_parts[1:]

    while pattern_parts and pattern_parts[0] == "**":
        pattern_parts = pattern_parts[1:]
    return not pattern_parts and not path_parts


def _symlink_escapes(path: Path, root: Path) -> bool:
    if not path.is_symlink():
        return False
    try:
        target = path.resolve(strict=True)
    except OSError:
        return True
    return target != root and root not in target.parents


def _read_text_file(path: Path) -> Optional[str]:
    try:
        data = path.read_bytes()
    except OSError:
        return None
    if b"\x00" in data[:_BINARY_SNIFF_BYTES]:
        return None
    return data.decode("utf-8", errors="replace")


def resolve_skill(skill_path: str, config_dir: Path) -> str:
    """
    Load skill text. Relative paths resolve against the config directory.

    Raises:
        ResolveError: If the skill file is missing or unreadable.
    """
    if not skill_path:
        return ""
    path = Path(skill_path).expanduser()
    if not path.is_absolute():
        path = config_dir / path
    if not path.exists():
        raise ResolveError(f"skill not found: {path}")
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ResolveError(f"failed to read skill: {exc}") from exc


def build_system_prompt(system_prompt: str, skill: str, files: List[FileContent]) -> str:
    """Join the persona, skill, and context-file sections that are non-empty."""
    parts: List[str] = []
    if system_prompt:
        parts.append(system_prompt)
    if skill:
        parts.append("\n\n---\n\n## Skill\n\n" + skill)
    if files:
        rendered = []
        for f in files:
            ext = Path(f.path).suffix.lstrip(".")
            rendered.append(f"### {f.path}\n```{ext}\n{f.content}\n```")
        parts.append("\n\n---\n\n## Context Files\n\n" + "\n\n".join(rendered))
    return "".join(parts)


def read_stdin(stream: Optional[TextIO] = None) -> str:
    """Return piped stdin, or "" when stdin is an interactive terminal."""
    stream = stream or sys.stdin
    if stream is None or stream.isatty():
        return ""
    try:
        return stream.read()
    except OSError as exc:
        raise ResolveError(f"failed to read stdin: {exc}") from exc


__all__ = [
    "FileContent",
    "resolve_workdir",
    "resolve_files",
    "resolve_skill",
    "build_system_prompt",
    "read_stdin",
]
