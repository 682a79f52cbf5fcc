"""Shared fixtures: isolated configuration and a scripted command runner."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Sequence

import pytest

from guidescout.config import ScoutConfig, reset_config
from guidescout.lib.shell import CommandResult, ToolNotFoundError


class FakeCommandRunner:
    """Stands in for ``CommandRunner``; replies are keyed by the exact argv.

    Unscripted commands behave like a tool that is not installed.
    """

    def __init__(self) -> None:
        self.replies: dict[tuple[str, ...], CommandResult | Exception] = {}
        self.calls: list[tuple[tuple[str, ...], str | None]] = []

    def add(self, argv: Sequence[str], stdout: str = "", exit_code: int = 0, stderr: str = "") -> None:
        self.replies[tuple(argv)] = CommandResult(stdout=stdout, stderr=stderr, exit_code=exit_code)

    def fail(self, argv: Sequence[str], error: Exception) -> None:
        self.replies[tuple(argv)] = error

    def commands(self) -> list[tuple[str, ...]]:
        return [argv for argv, _ in self.calls]

    async def run(self, argv: Sequence[str], *, cwd: str | Path | None = None) -> CommandResult:
        key = tuple(argv)
        self.calls.append((key, str(cwd) if cwd else None))
        reply = self.replies.get(key)
        if reply is None:
            raise ToolNotFoundError(f"'{argv[0]}' not found on PATH")
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture(autouse=True)
def _fresh_global_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def config(tmp_path: Path) -> ScoutConfig:
    """Configuration pointing every cache and override into tmp_path."""
    return ScoutConfig(
        cache_dir=tmp_path / "cache",
        contrib_dir=None,
        pub_cache=str(tmp_path / "pub-cache"),
        python_env=None,
        derived_data_dir=tmp_path / "DerivedData",
        fetch_timeout=1.0,
        log_level="DEBUG",
    )


@pytest.fixture
def runner() -> FakeCommandRunner:
    return FakeCommandRunner()


def write_json(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def write_text(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
