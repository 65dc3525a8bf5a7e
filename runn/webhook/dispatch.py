"""Webhook dispatch: authenticate, classify, then trigger the pipeline."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from runn.errors import (
    AuthenticationError,
    EventClassificationError,
    UnsupportedEventError,
    WebhookError,
)
from runn.pipeline.catalog import PipelineCatalog
from runn.pipeline.executor import CommandRunner, ExecutionOutcome, execute_pipeline
from runn.webhook.auth import TokenResolver, authenticate
from runn.webhook.events import EventKind, Headers, event_from_headers

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WebhookTrigger:
    """An authenticated, classified webhook ready to start a pipeline."""

    pipeline_id: str
    event: EventKind
    payload: Any


def handle_webhook(
    headers: Headers,
    pipeline_id: str,
    payload: Any,
    resolver: TokenResolver,
) -> WebhookTrigger:
    """Authenticate first, then classify the event.

    An unauthenticated request never reaches classification, so callers
    cannot probe which event types are supported.
    """
    authenticate(headers, pipeline_id, resolver)
    event = event_from_headers(headers)
    return WebhookTrigger(pipeline_id=pipeline_id, event=event, payload=payload)


def status_for_error(error: WebhookError) -> int:
    """Map a webhook error to an HTTP status code."""
    if isinstance(error, AuthenticationError):
        return 401
    if isinstance(error, UnsupportedEventError):
        return 422
    if isinstance(error, EventClassificationError):
        return 400
    return 500


def error_category(error: WebhookError) -> str:
    """Generic, non-revealing label for the response body."""
    if isinstance(error, AuthenticationError):
        return "unauthorized"
    if isinstance(error, UnsupportedEventError):
        return "unsupported_event"
    if isinstance(error, EventClassificationError):
        return "bad_request"
    return "internal_error"


def record_trigger(trigger: WebhookTrigger) -> None:
    """Log the event kind and payload of *trigger*."""
    logger.info(
        "Trigger pipeline %s from %s event",
        trigger.pipeline_id,
        trigger.event.value,
    )
    if isinstance(trigger.payload, dict):
        logger.info("Payload keys: %s", ", ".join(sorted(trigger.payload)))
    logger.debug("Payload: %s", json.dumps(trigger.payload, default=str))


class PipelineDispatcher:
    """Connects webhook requests to pipeline executions."""

    def __init__(
        self,
        catalog: PipelineCatalog,
        resolver: TokenResolver,
        *,
        runner: CommandRunner | None = None,
    ) -> None:
        self._catalog = catalog
        self._resolver = resolver
        self._runner = runner

    def handle(self, headers: Headers, pipeline_id: str, payload: Any) -> WebhookTrigger:
        return handle_webhook(headers, pipeline_id, payload, self._resolver)

    def trigger_pipeline(self, trigger: WebhookTrigger) -> ExecutionOutcome:
        """Record *trigger* and run its pipeline in the calling thread.

        Raises ``PipelineNotFoundError`` or ``ExecutionError`` when the
        pipeline cannot be started.
        """
        record_trigger(trigger)
        pipeline_path = self._catalog.pipeline_path(trigger.pipeline_id)
        outcome = execute_pipeline(
            pipeline_path,
            self._catalog.secrets_locator(),
            runner=self._runner,
            extra_env={
                "RUNN_PIPELINE": trigger.pipeline_id,
                "RUNN_EVENT": trigger.event.value,
            },
        )
        logger.info("Pipeline %s finished: %s", trigger.pipeline_id, outcome)
        return outcome
