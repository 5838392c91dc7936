"""
Tests for resolve.py: workdir, file globs, skills, prompt assembly, stdin.
"""

from __future__ import annotations

import io
import os
from pathlib import Path

import pytest

from agentrelay.exceptions import ResolveError
from agentrelay.resolve import (
    FileContent,
    build_system_prompt,
    read_stdin,
    resolve_files,
    resolve_skill,
    resolve_workdir,
)


@pytest.fixture
def project(tmp_path: Path) -> Path:
    (tmp_path / "src" / "pkg").mkdir(parents=True)
    (tmp_path / "README.md").write_text("# readme")
    (tmp_path / "src" / "main.py").write_text("print('main')")
    (tmp_path / "src" / "pkg" / "util.py").write_text("def util(): ...")
    (tmp_path / "src" / "pkg" / "blob.bin").write_bytes(b"\x00\x01\x02")
    return tmp_path


class TestWorkdir:
    def test_flag_wins(self):
        assert resolve_workdir("/flag", "/toml") == "/flag"

    def test_toml_next(self):
        assert resolve_workdir("", "/toml") == "/toml"

    def test_cwd_last(self):
        assert resolve_workdir("", "") == os.getcwd()


class TestResolveFiles:
    def test_no_patterns(self, project: Path):
        assert resolve_files([], str(project)) == []

    def test_simple_glob(self, project: Path):
        files = resolve_files(["*.md"], str(project))

        assert files == [FileContent(path="README.md", content="# readme")]

    def test_double_star(self, project: Path):
        files = resolve_files(["src/**/*.py"], str(project))

        assert [f.path for f in files] == ["src/main.py", "src/pkg/util.py"]

    def test_binary_files_skipped(self, project: Path):
        files = resolve_files(["src/**"], str(project))

        assert "src/pkg/blob.bin" not in [f.path for f in files]

    def test_duplicates_removed_and_sorted(self, project: Path):
        files = resolve_files(["src/**/*.py", "src/main.py", "*.md"], str(project))

        assert [f.path for f in files] == ["README.md", "src/main.py", "src/pkg/util.py"]

    def test_no_matches(self, project: Path):
        assert resolve_files(["*.rs"], str(project)) == []

    def test_symlink_escaping_workdir_skipped(self, project: Path, tmp_path_factory):
        outside = tmp_path_factory.mktemp("outside") / "secret.txt"
        outside.write_text("secret")
        (project / "link.txt").symlink_to(outside)

        files = resolve_files(["*.txt"], str(project))

        assert files == []

    def test_symlink_inside_workdir_kept(self, project: Path):
        (project / "alias.md").symlink_to(project / "README.md")

        files = resolve_files(["alias.md"], str(project))

        assert files == [FileContent(path="alias.md", content="# readme")]


class TestResolveSkill:
    def test_empty_path(self, tmp_path: Path):
        assert resolve_skill("", tmp_path) == ""

    def test_relative_to_config_dir(self, tmp_path: Path):
        skill = tmp_path / "skills" / "review" / "SKILL.md"
        skill.parent.mkdir(parents=True)
        skill.write_text("Review carefully.")

        assert resolve_skill("skills/review/SKILL.md", tmp_path) == "Review carefully."

    def test_absolute_path(self, tmp_path: Path):
        skill = tmp_path / "abs.md"
        skill.write_text("abs")

        assert resolve_skill(str(skill), Path("/nonexistent")) == "abs"

    def test_missing_skill(self, tmp_path: Path):
        with pytest.raises(ResolveError) as exc_info:
            resolve_skill("skills/missing.md", tmp_path)

        assert str(exc_info.value).startswith("skill not found: ")


class TestBuildSystemPrompt:
    def test_persona_only(self):
        assert build_system_prompt("You are terse.", "", []) == "You are terse."

    def test_all_sections(self):
        prompt = build_system_prompt(
            "Persona",
            "Skill body",
            [FileContent("a.go", "package a"), FileContent("Makefile", "all:")],
        )

        assert prompt == (
            "Persona"
            "\n\n---\n\n## Skill\n\nSkill body"
            "\n\n---\n\n## Context Files\n\n"
            "### a.go\n```go\npackage a\n```"
            "\n\n"
            "### Makefile\n```\nall:\n```"
        )

    def test_empty(self):
        assert build_system_prompt("", "", []) == ""


class TestReadStdin:
    def test_piped(self):
        assert read_stdin(io.StringIO("piped input")) == "piped input"

    def test_terminal(self):
        class Terminal(io.StringIO):
            def isatty(self):
                return True

        assert read_stdin(Terminal("ignored")) == ""
