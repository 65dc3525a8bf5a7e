"""Central path resolution for the runn home directory.

Every path the service needs by default is a property of ``RunnPaths``.
Config values may point pipelines and secrets elsewhere.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RunnPaths:
    """Resolved, immutable paths below ``runn_home`` (default ``~/.runn``)."""

    runn_home: Path

    @property
    def config_dir(self) -> Path:
        return self.runn_home / "config"

    @property
    def config_path(self) -> Path:
        return self.config_dir / "config.json"

    @property
    def pipelines_dir(self) -> Path:
        return self.runn_home / "pipelines"

    @property
    def secrets_path(self) -> Path:
        return self.runn_home / "secrets.yaml"

    @property
    def logs_dir(self) -> Path:
        return self.runn_home / "logs"


def resolve_paths(runn_home: str | Path | None = None) -> RunnPaths:
    """Build RunnPaths from an explicit value, ``$RUNN_HOME``, or ``~/.runn``."""
    raw = runn_home if runn_home is not None else os.environ.get("RUNN_HOME", "~/.runn")
    return RunnPaths(runn_home=Path(raw).expanduser().resolve())
