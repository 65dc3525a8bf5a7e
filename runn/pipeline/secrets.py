"""Secret manifest loading.

A secret manifest looks like::

    kind: secret
    name: production
    secrets:
      - name: DEPLOY_TOKEN
        value: s3cr3t

Values are kept as ``SecretStr`` so they never appear in ``repr()`` output
or in log lines that format a manifest or secret map.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, SecretStr

from runn.errors import DuplicateSecretNameError
from runn.pipeline.documents import load_tagged, parse_tagged

logger = logging.getLogger(__name__)

SECRET_KIND = "secret"  # noqa: S105

SecretMap = dict[str, SecretStr]


class SecretEntry(BaseModel):
    name: str
    value: SecretStr


class SecretManifest(BaseModel):
    """A parsed ``kind: secret`` document."""

    kind: Literal["secret"]
    name: str
    secrets: list[SecretEntry]

    def to_secret_map(self) -> SecretMap:
        """Build the name -> value map, failing on the first repeated name."""
        secret_map: SecretMap = {}
        for entry in self.secrets:
            if entry.name in secret_map:
                raise DuplicateSecretNameError(entry.name)
            secret_map[entry.name] = entry.value
        return secret_map


def load_secret_manifest(path: Path) -> SecretManifest:
    return load_tagged(path, SecretManifest, SECRET_KIND)


def load_secret_map(path: Path) -> SecretMap:
    """Load the secret manifest at *path* and return a fresh secret map.

    Raises:
        DocumentReadError: The file cannot be read.
        DocumentParseError: The YAML is malformed or fields are missing.
        InvalidKindError: ``kind`` is not ``secret``.
        DuplicateSecretNameError: Two entries share a name.
    """
    manifest = load_secret_manifest(path)
    secret_map = manifest.to_secret_map()
    logger.debug("Loaded %d secrets from manifest %s", len(secret_map), manifest.name)
    return secret_map


def secret_manifest_name(text: str) -> str:
    """Return the declared ``name`` of a secret manifest given as text."""
    return parse_tagged(text, SecretManifest, SECRET_KIND).name


def secret_environ(secrets: SecretMap) -> dict[str, str]:
    """Reveal a secret map as plain environment variables for a child process."""
    return {name: value.get_secret_value() for name, value in secrets.items()}
