"""Entry point: python -m runn."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from runn.config import RunnConfig, load_config
from runn.errors import DocumentError, ExecutionError
from runn.logging_config import level_from_name, setup_logging
from runn.paths import resolve_paths
from runn.pipeline.catalog import PipelineCatalog
from runn.pipeline.executor import StepFailed, execute_pipeline
from runn.pipeline.manifest import load_pipeline
from runn.pipeline.secrets import load_secret_manifest
from runn.webhook.auth import ConfigTokenResolver, ManifestTokenResolver, TokenResolver
from runn.webhook.dispatch import PipelineDispatcher
from runn.webhook.server import WebhookServer

logger = logging.getLogger(__name__)

_console = Console()

EXIT_LOAD_ERROR = 2


# ---------------------------------------------------------------------------
# run / check
# ---------------------------------------------------------------------------


def _cmd_run(args: argparse.Namespace) -> int:
    """Execute one pipeline manifest; exit with the failing step's status."""
    try:
        outcome = execute_pipeline(args.pipeline, args.secrets, args.workdir)
    except ExecutionError as exc:
        _console.print(f"[bold red]Pipeline did not run:[/bold red] {exc}")
        return EXIT_LOAD_ERROR

    if isinstance(outcome, StepFailed):
        _console.print(
            f"[bold red]Step '{outcome.step}' failed[/bold red] (exit {outcome.exit_code})"
        )
        return outcome.exit_code
    _console.print("[bold green]Pipeline succeeded.[/bold green]")
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    """Validate manifests without running any command."""
    try:
        pipeline = load_pipeline(args.pipeline)
        secrets = load_secret_manifest(args.secrets) if args.secrets else None
        if secrets is not None:
            secrets.to_secret_map()
    except DocumentError as exc:
        _console.print(f"[bold red]Invalid manifest:[/bold red] {exc}")
        return EXIT_LOAD_ERROR

    table = Table(show_header=True, box=None, padding=(0, 2))
    table.add_column("Step", style="bold green")
    table.add_column("Commands", justify="right")
    for step in pipeline.steps:
        table.add_row(step.name, str(len(step.commands)))
    if pipeline.on_failure is not None:
        table.add_row("[yellow]on_failure[/yellow]", str(len(pipeline.on_failure.commands)))
    _console.print(Panel(table, title=f"[bold]{pipeline.name}[/bold]", border_style="blue"))

    if pipeline.webhook_token:
        _console.print(f"Webhook token secret: [cyan]{pipeline.webhook_token}[/cyan]")
    if secrets is not None:
        names = ", ".join(entry.name for entry in secrets.secrets) or "-"
        _console.print(f"Secrets ([cyan]{secrets.name}[/cyan]): {names}")
        if pipeline.webhook_token and pipeline.webhook_token not in {
            entry.name for entry in secrets.secrets
        }:
            _console.print(
                f"[bold yellow]Secret '{pipeline.webhook_token}' is not declared.[/bold yellow]"
            )
    return 0


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


def build_resolver(config: RunnConfig, catalog: PipelineCatalog) -> TokenResolver:
    """Select the webhook token strategy configured in ``webhooks.auth_mode``."""
    if config.webhooks.auth_mode == "config":
        return ConfigTokenResolver(config.webhook_token())
    return ManifestTokenResolver(catalog)


async def _serve(server: WebhookServer) -> None:
    await server.start()
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()


def _cmd_serve(args: argparse.Namespace) -> int:
    """Load config and run the webhook server until interrupted."""
    paths = resolve_paths(args.home)
    setup_logging(verbose=args.verbose, log_dir=paths.logs_dir)
    try:
        config = load_config(paths)
    except (OSError, ValueError) as exc:
        logger.exception("Failed to load config at %s", paths.config_path)
        _console.print(f"[bold red]Invalid config:[/bold red] {exc}")
        return 1
    if not args.verbose:
        setup_logging(level=level_from_name(config.log_level), log_dir=paths.logs_dir)

    if not config.webhooks.enabled:
        _console.print("[bold yellow]Webhooks are disabled in config.[/bold yellow]")
        return 1

    catalog = PipelineCatalog(
        config.resolve_pipelines_dir(paths),
        config.resolve_secrets_file(paths),
    )
    pipelines = catalog.list_pipelines()
    logger.info(
        "Serving %d pipelines from %s (auth_mode=%s)",
        len(pipelines),
        catalog.pipelines_dir,
        config.webhooks.auth_mode,
    )
    dispatcher = PipelineDispatcher(catalog, build_resolver(config, catalog))
    server = WebhookServer(config.webhooks, dispatcher)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_serve(server))
    logger.info("Shutting down...")
    return 0


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="runn",
        description="Run shell pipelines from manifests or GitLab webhooks.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose logging output")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Execute a pipeline manifest")
    run.add_argument("pipeline", type=Path, help="Pipeline manifest (YAML)")
    run.add_argument("--secrets", type=Path, default=None, help="Secret manifest (YAML)")
    run.add_argument("--workdir", type=Path, default=None, help="Working directory for commands")
    run.set_defaults(handler=_cmd_run)

    check = sub.add_parser("check", help="Validate manifests without running them")
    check.add_argument("pipeline", type=Path, help="Pipeline manifest (YAML)")
    check.add_argument("--secrets", type=Path, default=None, help="Secret manifest (YAML)")
    check.set_defaults(handler=_cmd_check)

    serve = sub.add_parser("serve", help="Start the GitLab webhook server")
    serve.add_argument("--home", default=None, help="runn home directory (default ~/.runn)")
    serve.set_defaults(handler=_cmd_serve)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    if args.command != "serve":
        setup_logging(level=logging.INFO, verbose=args.verbose)
    sys.exit(args.handler(args))


if __name__ == "__main__":
    main()
