"""Pipeline execution: sequential shell commands with injected secrets.

Steps run in manifest order, one command at a time. The first non-zero
exit stops the pipeline, runs the ``on_failure`` hook best-effort, and is
reported as ``StepFailed``. Load failures raise before any command runs.
"""

from __future__ import annotations

import logging
import os
import subprocess
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from runn.errors import DocumentError, ManifestError, SecretsError
from runn.log_context import set_log_context
from runn.pipeline.manifest import load_pipeline
from runn.pipeline.secrets import SecretMap, load_secret_map, secret_environ

logger = logging.getLogger(__name__)

EXIT_SPAWN_FAILED = 127


class CommandRunner(Protocol):
    """Runs one shell command and returns its exit status."""

    def run(self, command: str, cwd: Path, env: Mapping[str, str]) -> int: ...


class ShellCommandRunner:
    """Runs commands through ``/bin/sh -c`` and waits for them to exit."""

    def run(self, command: str, cwd: Path, env: Mapping[str, str]) -> int:
        try:
            result = subprocess.run(  # noqa: S602
                command,
                shell=True,
                cwd=str(cwd),
                env=dict(env),
                check=False,
            )
        except (OSError, ValueError):
            # ValueError: NUL byte in the command or env, or "=" in an env name.
            logger.warning("Failed to spawn command in %s", cwd, exc_info=True)
            return EXIT_SPAWN_FAILED
        if result.returncode < 0:
            # Killed by signal N: report it the way a shell would.
            return 128 - result.returncode
        return result.returncode


@dataclass(frozen=True)
class Success:
    """Every command of every step exited zero."""

    succeeded = True


@dataclass(frozen=True)
class StepFailed:
    """A command in *step* exited with *exit_code*; later commands never ran."""

    step: str
    exit_code: int

    succeeded = False


ExecutionOutcome = Success | StepFailed


def resolve_workdir(pipeline_path: Path, workdir: Path | None) -> Path:
    """Explicit *workdir*, else the manifest's directory, else the current directory."""
    if workdir is not None:
        return workdir
    # A bare file name has parent ".", which subprocess resolves against the cwd.
    return pipeline_path.parent


def build_environment(
    secrets: SecretMap,
    extra_env: Mapping[str, str] | None = None,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Inherited environment, then *extra_env*, then one variable per secret."""
    env = dict(os.environ if base_env is None else base_env)
    if extra_env:
        env.update(extra_env)
    env.update(secret_environ(secrets))
    return env


def _run_commands(
    commands: Sequence[str],
    cwd: Path,
    env: Mapping[str, str],
    runner: CommandRunner,
) -> int:
    """Run *commands* in order. Returns 0, or the first non-zero exit status."""
    for command in commands:
        logger.debug("Running command: %s", command)
        status = runner.run(command, cwd, env)
        if status != 0:
            return status
    return 0


def _run_failure_hook(
    commands: Sequence[str],
    cwd: Path,
    env: Mapping[str, str],
    runner: CommandRunner,
) -> None:
    """Run the failure hook; its own failures are logged and dropped."""
    logger.info("Running on_failure hook (%d commands)", len(commands))
    try:
        status = _run_commands(commands, cwd, env, runner)
    except Exception:
        logger.warning("on_failure hook raised", exc_info=True)
        return
    if status != 0:
        logger.warning("on_failure hook exited with status %d", status)
    else:
        logger.info("on_failure hook completed")


def execute_pipeline(
    pipeline_path: Path,
    secrets_path: Path | None = None,
    workdir: Path | None = None,
    *,
    runner: CommandRunner | None = None,
    extra_env: Mapping[str, str] | None = None,
) -> ExecutionOutcome:
    """Run the pipeline at *pipeline_path* and return its outcome.

    Raises:
        ManifestError: The pipeline manifest failed to load.
        SecretsError: The secret manifest failed to load.
    """
    runner = runner or ShellCommandRunner()

    try:
        pipeline = load_pipeline(pipeline_path)
    except DocumentError as exc:
        logger.error("Cannot load pipeline %s: %s", pipeline_path, exc)
        msg = f"Pipeline manifest {pipeline_path} failed to load: {exc}"
        raise ManifestError(msg) from exc

    secrets: SecretMap = {}
    if secrets_path is not None:
        try:
            secrets = load_secret_map(secrets_path)
        except DocumentError as exc:
            logger.error("Cannot load secrets %s: %s", secrets_path, exc)
            msg = f"Secret manifest {secrets_path} failed to load: {exc}"
            raise SecretsError(msg) from exc

    set_log_context(operation="run", pipeline=pipeline.name, run_id=uuid.uuid4().hex)
    cwd = resolve_workdir(pipeline_path, workdir)
    env = build_environment(secrets, extra_env)
    logger.info(
        "Pipeline %s starting: %d steps, %d secrets, cwd=%s",
        pipeline.name,
        len(pipeline.steps),
        len(secrets),
        cwd,
    )
    if not pipeline.steps:
        logger.warning("Pipeline %s declares no steps", pipeline.name)

    for step in pipeline.steps:
        logger.info("Running step: %s", step.name)
        status = _run_commands(step.commands, cwd, env, runner)
        if status == 0:
            continue
        logger.warning("Step failed: %s (status %d)", step.name, status)
        if pipeline.on_failure is not None:
            _run_failure_hook(pipeline.on_failure.commands, cwd, env, runner)
        return StepFailed(step=step.name, exit_code=status)

    logger.info("Pipeline %s succeeded", pipeline.name)
    return Success()
