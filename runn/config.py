"""Service configuration loaded from ``config/config.json``."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from runn.paths import RunnPaths

logger = logging.getLogger(__name__)

WEBHOOK_TOKEN_ENV = "RUNN_WEBHOOK_TOKEN"  # noqa: S105


class WebhookConfig(BaseModel):
    """Settings for the webhook HTTP server."""

    enabled: bool = True
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080
    auth_mode: Literal["manifest", "config"] = "manifest"
    token: str = ""
    max_body_bytes: int = 1048576


class RunnConfig(BaseModel):
    """Top-level configuration.

    ``pipelines_dir`` and ``secrets_file`` default to locations under the
    runn home directory when left empty.
    """

    log_level: str = "INFO"
    pipelines_dir: str = ""
    secrets_file: str = ""
    webhooks: WebhookConfig = Field(default_factory=WebhookConfig)

    def resolve_pipelines_dir(self, paths: RunnPaths) -> Path:
        if self.pipelines_dir:
            return Path(self.pipelines_dir).expanduser().resolve()
        return paths.pipelines_dir

    def resolve_secrets_file(self, paths: RunnPaths) -> Path:
        if self.secrets_file:
            return Path(self.secrets_file).expanduser().resolve()
        return paths.secrets_path

    def webhook_token(self) -> str:
        """Static webhook token: ``$RUNN_WEBHOOK_TOKEN`` wins over ``webhooks.token``."""
        return os.environ.get(WEBHOOK_TOKEN_ENV, "") or self.webhooks.token


def deep_merge_config(
    user: dict[str, object],
    defaults: dict[str, object],
) -> tuple[dict[str, object], bool]:
    """Recursively merge *defaults* into *user*, preserving user values.

    Returns ``(merged_dict, changed)`` where *changed* is True when keys were added.
    """
    result: dict[str, object] = dict(user)
    changed = False
    for key, default_val in defaults.items():
        if key not in result:
            result[key] = default_val
            changed = True
        elif isinstance(default_val, dict) and isinstance(result[key], dict):
            sub_merged, sub_changed = deep_merge_config(
                result[key],  # type: ignore[arg-type]
                default_val,
            )
            result[key] = sub_merged
            changed = changed or sub_changed
    return result, changed


def _write_json(path: Path, data: dict[str, object]) -> None:
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def load_config(paths: RunnPaths) -> RunnConfig:
    """Load config.json, creating or extending it with current defaults.

    A missing file is created from defaults. An existing file is deep-merged
    with defaults so that newly introduced keys appear without touching the
    user's values. Malformed JSON raises ``json.JSONDecodeError``; invalid
    values raise ``pydantic.ValidationError``.
    """
    config_path = paths.config_path
    defaults = RunnConfig().model_dump(mode="json")

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        _write_json(config_path, defaults)
        logger.info("Created default config at %s", config_path)
        return RunnConfig()

    user_data: dict[str, object] = json.loads(config_path.read_text(encoding="utf-8"))
    merged, changed = deep_merge_config(user_data, defaults)
    if changed:
        _write_json(config_path, merged)
        logger.info("Extended config with new default fields")
    return RunnConfig.model_validate(merged)
