"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path

import pytest


class RecordingRunner:
    """CommandRunner double: records calls, returns scripted exit statuses."""

    def __init__(
        self,
        statuses: Mapping[str, int] | None = None,
        raises: Mapping[str, Exception] | None = None,
    ) -> None:
        self._statuses = dict(statuses or {})
        self._raises = dict(raises or {})
        self.calls: list[tuple[str, Path, dict[str, str]]] = []

    @property
    def commands(self) -> list[str]:
        return [command for command, _cwd, _env in self.calls]

    def run(self, command: str, cwd: Path, env: Mapping[str, str]) -> int:
        self.calls.append((command, cwd, dict(env)))
        if command in self._raises:
            raise self._raises[command]
        return self._statuses.get(command, 0)


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def make_runner() -> type[RecordingRunner]:
    """The RecordingRunner class, for tests that script exit statuses."""
    return RecordingRunner


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write *content* to ``tmp_path / name`` and return the path."""

    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write
