"""YAML manifest reading with ``kind`` tag validation.

Both manifest types are tagged documents. The tag is checked on the raw
mapping before any other field is validated, so a document of the wrong
kind is rejected as a whole.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from runn.errors import DocumentParseError, DocumentReadError, InvalidKindError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def read_text(path: Path) -> str:
    """Read a manifest file, wrapping OS errors in ``DocumentReadError``."""
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Cannot read manifest {path}: {exc}"
        raise DocumentReadError(msg) from exc


def parse_tagged(text: str, model: type[ModelT], kind: str, *, source: str = "<string>") -> ModelT:
    """Parse YAML *text* into *model* after checking its ``kind`` tag."""
    try:
        data: Any = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        msg = f"Malformed YAML in {source}: {exc}"
        raise DocumentParseError(msg) from exc

    if not isinstance(data, dict):
        msg = f"Manifest {source} must be a mapping, got {type(data).__name__}"
        raise DocumentParseError(msg)

    actual = data.get("kind")
    if actual != kind:
        logger.warning("Rejected manifest %s: kind=%r (expected %r)", source, actual, kind)
        raise InvalidKindError(None if actual is None else str(actual), kind)

    try:
        return model.model_validate(data)
    except ValidationError as exc:
        msg = f"Invalid {kind} manifest {source}: {exc}"
        raise DocumentParseError(msg) from exc


def load_tagged(path: Path, model: type[ModelT], kind: str) -> ModelT:
    """Read and parse the manifest at *path*."""
    return parse_tagged(read_text(path), model, kind, source=str(path))
