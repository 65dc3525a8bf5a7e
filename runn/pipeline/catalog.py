"""Pipeline identifier to manifest path resolution."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from runn.errors import PipelineNotFoundError

logger = logging.getLogger(__name__)

_PIPELINE_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,127}$")
_SUFFIXES = (".yaml", ".yml")


class PipelineCatalog:
    """Locates pipeline manifests as ``<pipelines_dir>/<id>.yaml`` (or ``.yml``).

    Also carries the path of the shared secret manifest.
    """

    def __init__(self, pipelines_dir: Path, secrets_path: Path | None = None) -> None:
        self._pipelines_dir = pipelines_dir
        self._secrets_path = secrets_path

    @property
    def pipelines_dir(self) -> Path:
        return self._pipelines_dir

    @property
    def secrets_path(self) -> Path | None:
        return self._secrets_path

    def pipeline_path(self, pipeline_id: str) -> Path:
        """Return the manifest path for *pipeline_id*.

        Raises ``PipelineNotFoundError`` for malformed identifiers, paths that
        escape the pipelines directory, and identifiers with no manifest.
        """
        if not _PIPELINE_ID_RE.match(pipeline_id):
            logger.warning("Rejected pipeline id %r", pipeline_id)
            msg = f"Invalid pipeline id: {pipeline_id!r}"
            raise PipelineNotFoundError(msg)

        root = self._pipelines_dir.resolve()
        for suffix in _SUFFIXES:
            candidate = (root / f"{pipeline_id}{suffix}").resolve()
            if not candidate.is_relative_to(root):
                logger.warning("Pipeline path blocked: %s (outside %s)", candidate, root)
                break
            if candidate.is_file():
                return candidate

        msg = f"No pipeline manifest for {pipeline_id!r} in {root}"
        raise PipelineNotFoundError(msg)

    def secrets_locator(self) -> Path | None:
        """Return the secret manifest path when it exists, else None."""
        if self._secrets_path is not None and self._secrets_path.is_file():
            return self._secrets_path
        return None

    def list_pipelines(self) -> list[str]:
        """Return the identifiers of all manifests in the pipelines directory."""
        if not self._pipelines_dir.is_dir():
            return []
        ids = {
            path.stem
            for path in self._pipelines_dir.iterdir()
            if path.suffix in _SUFFIXES and path.is_file() and _PIPELINE_ID_RE.match(path.stem)
        }
        return sorted(ids)
