"""Webhook system: GitLab ingress that authenticates and triggers pipelines."""

from runn.webhook.dispatch import PipelineDispatcher, WebhookTrigger, handle_webhook
from runn.webhook.events import EventKind, classify_event

__all__ = ["EventKind", "PipelineDispatcher", "WebhookTrigger", "classify_event", "handle_webhook"]
