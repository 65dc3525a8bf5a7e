"""Tests for the command line entry point."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest

from runn.__main__ import EXIT_LOAD_ERROR, build_resolver, main
from runn.config import RunnConfig, WebhookConfig
from runn.pipeline.catalog import PipelineCatalog
from runn.webhook.auth import ConfigTokenResolver, ManifestTokenResolver

_PIPELINE = """\
kind: pipeline
name: demo
webhook_token: HOOK
steps:
  - name: greet
    commands: ['printf "%s" "$GREETING" > out.txt']
  - name: fail
    commands: ["exit 4"]
"""

_SECRETS = """\
kind: secret
name: demo
secrets:
  - name: GREETING
    value: hello
"""


@pytest.fixture(autouse=True)
def _no_logging_setup() -> Iterator[None]:
    with patch("runn.__main__.setup_logging"):
        yield


@pytest.fixture
def manifests(tmp_path: Path) -> tuple[Path, Path]:
    pipeline = tmp_path / "demo.yaml"
    pipeline.write_text(_PIPELINE)
    secrets = tmp_path / "secrets.yaml"
    secrets.write_text(_SECRETS)
    return pipeline, secrets


def _exit_code(argv: list[str]) -> int:
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return int(exc_info.value.code or 0)


class TestRunCommand:
    def test_exits_with_failing_step_status(
        self, manifests: tuple[Path, Path], tmp_path: Path
    ) -> None:
        pipeline, secrets = manifests
        assert _exit_code(["run", str(pipeline), "--secrets", str(secrets)]) == 4
        assert (tmp_path / "out.txt").read_text() == "hello"

    def test_success(self, tmp_path: Path) -> None:
        pipeline = tmp_path / "ok.yaml"
        pipeline.write_text("kind: pipeline\nname: ok\nsteps:\n  - {name: a, commands: ['true']}\n")
        assert _exit_code(["run", str(pipeline)]) == 0

    def test_workdir_option(self, manifests: tuple[Path, Path], tmp_path: Path) -> None:
        pipeline, secrets = manifests
        workdir = tmp_path / "work"
        workdir.mkdir()
        _exit_code(["run", str(pipeline), "--secrets", str(secrets), "--workdir", str(workdir)])
        assert (workdir / "out.txt").read_text() == "hello"

    def test_load_error_exit_code(self, tmp_path: Path) -> None:
        assert _exit_code(["run", str(tmp_path / "missing.yaml")]) == EXIT_LOAD_ERROR


class TestCheckCommand:
    def test_valid_manifests(
        self, manifests: tuple[Path, Path], capsys: pytest.CaptureFixture[str]
    ) -> None:
        pipeline, secrets = manifests
        assert _exit_code(["check", str(pipeline), "--secrets", str(secrets)]) == 0
        out = capsys.readouterr().out
        assert "greet" in out
        assert "GREETING" in out
        assert "hello" not in out

    def test_undeclared_webhook_secret_warned(
        self, manifests: tuple[Path, Path], capsys: pytest.CaptureFixture[str]
    ) -> None:
        pipeline, secrets = manifests
        _exit_code(["check", str(pipeline), "--secrets", str(secrets)])
        assert "'HOOK' is not declared" in capsys.readouterr().out

    def test_invalid_manifest(self, tmp_path: Path) -> None:
        bad = tmp_path / "bad.yaml"
        bad.write_text("kind: secret\nname: x\nsecrets: []\n")
        assert _exit_code(["check", str(bad)]) == EXIT_LOAD_ERROR

    def test_runs_nothing(self, manifests: tuple[Path, Path], tmp_path: Path) -> None:
        pipeline, secrets = manifests
        with patch("runn.pipeline.executor.subprocess.run") as run:
            _exit_code(["check", str(pipeline), "--secrets", str(secrets)])
        run.assert_not_called()
        assert not (tmp_path / "out.txt").exists()


class TestBuildResolver:
    def test_manifest_mode(self, tmp_path: Path) -> None:
        catalog = PipelineCatalog(tmp_path)
        assert isinstance(build_resolver(RunnConfig(), catalog), ManifestTokenResolver)

    def test_config_mode(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("RUNN_WEBHOOK_TOKEN", raising=False)
        config = RunnConfig(webhooks=WebhookConfig(auth_mode="config", token="abc"))
        resolver = build_resolver(config, PipelineCatalog(tmp_path))
        assert isinstance(resolver, ConfigTokenResolver)
        assert resolver.resolve_expected_token("any") == "abc"


def test_serve_disabled_exits_nonzero(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "config.json").write_text('{"webhooks": {"enabled": false}}')
    with patch("runn.__main__.asyncio.run") as run:
        assert _exit_code(["serve", "--home", str(tmp_path)]) == 1
    run.assert_not_called()


def test_serve_invalid_config_exits_nonzero(tmp_path: Path) -> None:
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "config.json").write_text("{not json")
    with patch("runn.__main__.asyncio.run") as run:
        assert _exit_code(["serve", "--home", str(tmp_path)]) == 1
    run.assert_not_called()


def test_command_required() -> None:
    assert _exit_code([]) == 2
