"""Webhook authentication against a per-pipeline or static token.

The expected token comes from a ``TokenResolver``:

- ``ManifestTokenResolver``: the pipeline manifest names a secret
  (``webhook_token``) whose value is read from the secret manifest.
- ``ConfigTokenResolver``: one static token from configuration.

Either way the inbound ``X-Gitlab-Token`` header must match exactly.
"""

from __future__ import annotations

import hmac
import logging
from typing import Protocol

from runn.errors import (
    DocumentError,
    InvalidTokenError,
    InvalidTokenHeaderError,
    MissingTokenConfigurationError,
    MissingTokenHeaderError,
    MissingWebhookTokenNameError,
    MissingWebhookTokenValueError,
    PipelineNotFoundError,
    TokenSourceError,
    UnknownPipelineError,
)
from runn.pipeline.catalog import PipelineCatalog
from runn.pipeline.manifest import load_webhook_token_name
from runn.pipeline.secrets import load_secret_map
from runn.webhook.events import Headers, header_text

logger = logging.getLogger(__name__)

TOKEN_HEADER = "X-Gitlab-Token"  # noqa: S105


class TokenResolver(Protocol):
    """Source of the token a webhook for *pipeline_id* must present."""

    def resolve_expected_token(self, pipeline_id: str) -> str: ...


class ManifestTokenResolver:
    """Reads the token from the secret named by the pipeline's manifest."""

    def __init__(self, catalog: PipelineCatalog) -> None:
        self._catalog = catalog

    def resolve_expected_token(self, pipeline_id: str) -> str:
        try:
            pipeline_path = self._catalog.pipeline_path(pipeline_id)
        except PipelineNotFoundError as exc:
            raise UnknownPipelineError(str(exc)) from exc

        try:
            token_name = load_webhook_token_name(pipeline_path)
        except DocumentError as exc:
            logger.error("Pipeline manifest for %s failed to load: %s", pipeline_id, exc)
            msg = f"Pipeline manifest for {pipeline_id!r} failed to load"
            raise TokenSourceError(msg) from exc
        if not token_name:
            msg = f"Pipeline {pipeline_id!r} declares no webhook_token"
            raise MissingWebhookTokenNameError(msg)

        secrets_path = self._catalog.secrets_locator()
        if secrets_path is None:
            raise MissingWebhookTokenValueError(token_name)
        try:
            secrets = load_secret_map(secrets_path)
        except DocumentError as exc:
            logger.error("Secret manifest %s failed to load: %s", secrets_path, exc)
            msg = f"Secret manifest {secrets_path} failed to load"
            raise TokenSourceError(msg) from exc

        token = secrets.get(token_name)
        if token is None:
            raise MissingWebhookTokenValueError(token_name)
        return token.get_secret_value()


class ConfigTokenResolver:
    """Uses one statically configured token for every pipeline."""

    def __init__(self, token: str) -> None:
        self._token = token

    def __repr__(self) -> str:
        return f"{type(self).__name__}(configured={bool(self._token)})"

    def resolve_expected_token(self, pipeline_id: str) -> str:  # noqa: ARG002
        if not self._token:
            msg = "No webhook token configured"
            raise MissingTokenConfigurationError(msg)
        return self._token


def validate_token(headers: Headers, expected_token: str) -> None:
    """Check the ``X-Gitlab-Token`` header against *expected_token*.

    The comparison is exact and byte-for-byte.
    """
    try:
        value = header_text(headers, TOKEN_HEADER)
    except UnicodeError as exc:
        msg = "X-Gitlab-Token header is not valid text"
        raise InvalidTokenHeaderError(msg) from exc
    if value is None:
        msg = "Missing X-Gitlab-Token header"
        raise MissingTokenHeaderError(msg)
    if not hmac.compare_digest(value.encode("utf-8"), expected_token.encode("utf-8")):
        msg = "Webhook token mismatch"
        raise InvalidTokenError(msg)


def authenticate(headers: Headers, pipeline_id: str, resolver: TokenResolver) -> None:
    """Authenticate a webhook for *pipeline_id*. Raises ``AuthenticationError``
    or ``TokenSourceError`` on failure.
    """
    expected = resolver.resolve_expected_token(pipeline_id)
    validate_token(headers, expected)
    logger.debug("Webhook authenticated pipeline=%s", pipeline_id)
