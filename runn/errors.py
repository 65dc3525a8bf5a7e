"""Project-level exception hierarchy."""

from __future__ import annotations


class RunnError(Exception):
    """Base for all runn exceptions."""


# -- Manifest documents --


class DocumentError(RunnError):
    """A manifest document could not be loaded."""


class DocumentReadError(DocumentError):
    """The manifest file could not be read."""


class DocumentParseError(DocumentError):
    """The manifest is not valid YAML or does not match the expected shape."""


class InvalidKindError(DocumentError):
    """The manifest's ``kind`` tag is missing or names another document type."""

    def __init__(self, actual: str | None, expected: str) -> None:
        self.actual = actual
        self.expected = expected
        super().__init__(f"Invalid manifest kind {actual!r} (expected {expected!r})")


class DuplicateSecretNameError(DocumentError):
    """A secret manifest declares the same name twice."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Duplicate secret name: {name}")


class PipelineNotFoundError(RunnError):
    """No pipeline manifest exists for the requested identifier."""


# -- Execution --


class ExecutionError(RunnError):
    """A pipeline could not be started; no command was run."""


class ManifestError(ExecutionError):
    """The pipeline manifest failed to load."""


class SecretsError(ExecutionError):
    """The secret manifest failed to load."""


# -- Webhooks --


class WebhookError(RunnError):
    """An inbound webhook was rejected."""


class AuthenticationError(WebhookError):
    """The webhook could not be authenticated."""


class MissingTokenHeaderError(AuthenticationError):
    """The request carries no token header."""


class InvalidTokenHeaderError(AuthenticationError):
    """The token header is not valid text."""


class InvalidTokenError(AuthenticationError):
    """The token header does not match the expected token."""


class MissingWebhookTokenNameError(AuthenticationError):
    """The pipeline manifest names no webhook token secret."""


class MissingWebhookTokenValueError(AuthenticationError):
    """The secret named by the pipeline manifest is not declared."""

    def __init__(self, token_name: str) -> None:
        self.token_name = token_name
        super().__init__(f"Webhook token secret not found: {token_name}")


class MissingTokenConfigurationError(AuthenticationError):
    """No static webhook token is configured."""


class UnknownPipelineError(AuthenticationError):
    """The addressed pipeline does not exist."""


class TokenSourceError(WebhookError):
    """A manifest backing the webhook token failed to load."""


class EventClassificationError(WebhookError):
    """The webhook event type could not be classified."""


class MissingEventHeaderError(EventClassificationError):
    """The request carries no event header."""


class InvalidEventHeaderError(EventClassificationError):
    """The event header is not valid text."""


class UnsupportedEventError(EventClassificationError):
    """The event type is not one this service handles."""

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f"Unsupported event: {value}")
