"""Webhook HTTP server: aiohttp ingress for GitLab webhooks."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web

from runn.errors import RunnError, WebhookError
from runn.log_context import set_log_context
from runn.pipeline.executor import StepFailed
from runn.webhook.dispatch import error_category, status_for_error

if TYPE_CHECKING:
    from runn.config import WebhookConfig
    from runn.webhook.dispatch import PipelineDispatcher, WebhookTrigger

logger = logging.getLogger(__name__)


class WebhookServer:
    """HTTP server accepting GitLab webhooks and starting pipelines.

    Routes:
    - ``GET  /health``                       -- Health check.
    - ``POST /webhooks/gitlab/{pipeline}``   -- Authenticated pipeline trigger.

    Accepted requests answer 202 immediately; the pipeline runs in a
    worker thread afterwards.
    """

    def __init__(self, config: WebhookConfig, dispatcher: PipelineDispatcher) -> None:
        self._config = config
        self._dispatcher = dispatcher
        self._runner: web.AppRunner | None = None
        self._background_tasks: set[asyncio.Task[None]] = set()

    def build_app(self) -> web.Application:
        app = web.Application(client_max_size=self._config.max_body_bytes)
        app.router.add_get("/health", self._handle_health)
        app.router.add_post("/webhooks/gitlab/{pipeline}", self._handle_gitlab)
        return app

    async def start(self) -> None:
        """Create the aiohttp app and start listening."""
        self._runner = web.AppRunner(self.build_app(), access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()
        logger.info("Webhook server listening on %s:%d", self._config.host, self._config.port)

    async def stop(self) -> None:
        """Shut down the server, waiting for running pipelines."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        if self._background_tasks:
            logger.info("Waiting for %d running pipelines", len(self._background_tasks))
            await asyncio.gather(*self._background_tasks, return_exceptions=True)
        logger.info("Webhook server stopped")

    async def drain(self) -> None:
        """Wait until every background pipeline run has finished."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    # -- Handlers --

    async def _handle_health(self, _request: web.Request) -> web.Response:
        return web.json_response({"status": "ok"})

    async def _handle_gitlab(self, request: web.Request) -> web.Response:
        pipeline_id = request.match_info["pipeline"]
        set_log_context(operation="wh", pipeline=pipeline_id)
        logger.info("Webhook request received pipeline=%s", pipeline_id)

        if request.content_type != "application/json":
            logger.warning("Webhook rejected: bad content-type pipeline=%s", pipeline_id)
            return web.json_response({"error": "content_type_must_be_json"}, status=415)

        try:
            payload: Any = json.loads(await request.read())
        except ValueError:
            logger.warning("Webhook rejected: invalid JSON pipeline=%s", pipeline_id)
            return web.json_response({"error": "invalid_json"}, status=400)

        try:
            trigger = await asyncio.to_thread(
                self._dispatcher.handle, request.headers, pipeline_id, payload
            )
        except WebhookError as exc:
            logger.warning("Invalid gitlab webhook pipeline=%s: %r", pipeline_id, exc)
            return web.json_response({"error": error_category(exc)}, status=status_for_error(exc))

        task = asyncio.create_task(self._safe_trigger(trigger))
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

        return web.json_response(
            {"accepted": True, "pipeline": pipeline_id, "event": trigger.event.value},
            status=202,
        )

    async def _safe_trigger(self, trigger: WebhookTrigger) -> None:
        """Run the pipeline in a worker thread, logging instead of raising."""
        try:
            outcome = await asyncio.to_thread(self._dispatcher.trigger_pipeline, trigger)
        except RunnError as exc:
            logger.error("Pipeline %s did not start: %s", trigger.pipeline_id, exc)
            return
        except Exception:
            logger.exception("Pipeline %s crashed", trigger.pipeline_id)
            return
        if isinstance(outcome, StepFailed):
            logger.warning(
                "Pipeline %s failed at step %s (exit %d)",
                trigger.pipeline_id,
                outcome.step,
                outcome.exit_code,
            )
