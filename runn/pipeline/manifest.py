"""Pipeline manifest loading.

A pipeline manifest looks like::

    kind: pipeline
    name: build
    webhook_token: GITLAB_WEBHOOK_TOKEN
    steps:
      - name: test
        commands:
          - make test
    on_failure:
      commands:
        - ./notify.sh

Secret references are returned as names; resolving them is the caller's job.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field

from runn.pipeline.documents import load_tagged

PIPELINE_KIND = "pipeline"


class Step(BaseModel):
    """A named, ordered list of shell commands."""

    name: str
    commands: list[str]


class FailureHook(BaseModel):
    """Commands run best-effort after the first failing step."""

    commands: list[str]


class PipelineManifest(BaseModel):
    """A parsed ``kind: pipeline`` document."""

    kind: Literal["pipeline"]
    name: str
    steps: list[Step]
    webhook_token: str | None = Field(
        default=None,
        validation_alias=AliasChoices("webhook_token", "webhook_token_name", "webhookTokenName"),
    )
    on_failure: FailureHook | None = Field(
        default=None,
        validation_alias=AliasChoices("on_failure", "onFailure"),
    )


def load_pipeline(path: Path) -> PipelineManifest:
    """Load the pipeline manifest at *path*.

    Raises ``DocumentError`` subclasses for unreadable, malformed, or
    wrongly tagged documents.
    """
    return load_tagged(path, PipelineManifest, PIPELINE_KIND)


def load_webhook_token_name(path: Path) -> str | None:
    """Return the name of the secret that backs the pipeline's webhook token."""
    return load_pipeline(path).webhook_token
