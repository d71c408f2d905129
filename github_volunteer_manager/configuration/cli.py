"""Defines the Command Line Interface (CLI) using Typer."""

import asyncio
import logging
import sys
from pathlib import Path

import structlog
import typer
from dotenv import load_dotenv
from typer import Argument, Option
from typing_extensions import Annotated

from github_volunteer_manager.configuration.env import Settings
from github_volunteer_manager.notify.console import ConsoleNotifier
from github_volunteer_manager.synchronize.driver import (
    load_payload,
    open_application,
    run_init_db_workflow,
    run_reconcile_event_workflow,
    run_sync_open_items_workflow,
    run_volunteer_workflow,
)
from github_volunteer_manager.volunteer.results import AssignmentOutcome

load_dotenv()

typer_app = typer.Typer(pretty_exceptions_show_locals=False)


def configure_logging(debug: bool) -> None:
    """Configure structlog to render to stderr at INFO, or DEBUG when debugging."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


@typer_app.callback()
def main_callback(
    ctx: typer.Context,
    debug: Annotated[bool, Option(envvar="DEBUG", help="Enable debug logging.")] = False,
    database_url: Annotated[str | None, Option(envvar="DATABASE_URL", help="Record store database URL.")] = None,
    projects_path: Annotated[Path | None, Option(envvar="PROJECTS_PATH", help="Path to the projects YAML file.")] = None,
) -> None:
    """Synchronize GitHub items into the record store and coordinate volunteers."""
    configure_logging(debug)
    settings = Settings()
    updates: dict[str, object] = {"DEBUG": debug}
    if database_url is not None:
        updates["DATABASE_URL"] = database_url
    if projects_path is not None:
        updates["PROJECTS_PATH"] = projects_path
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings.model_copy(update=updates)


@typer_app.command(name="init-db")
def init_db_cli(ctx: typer.Context) -> None:
    """Create the record store tables."""
    settings: Settings = ctx.obj["settings"]
    asyncio.run(run_init_db_workflow(settings.DATABASE_URL))
    typer.echo("Record store initialized")


@typer_app.command(name="reconcile-event")
def reconcile_event_cli(
    ctx: typer.Context,
    event: Annotated[str, Argument(help="Event name, e.g. 'issues.opened' or 'pull_request.review_requested'.")],
    payload_path: Annotated[Path, Argument(help="Path to a JSON file holding the webhook payload.")],
) -> None:
    """Handle one verified webhook event."""
    settings: Settings = ctx.obj["settings"]
    if not payload_path.exists():
        typer.echo(f"Payload file not found: {payload_path.absolute()}", err=True)
        raise typer.Exit(1)
    payload = load_payload(payload_path)

    async def _run() -> None:
        async with open_application(settings, ConsoleNotifier()) as app:
            decision = await run_reconcile_event_workflow(app, event, payload)
        typer.echo(f"Event {event} handled: {decision.value if decision is not None else 'no reconciliation'}")

    asyncio.run(_run())


@typer_app.command(name="sync-open-items")
def sync_open_items_cli(
    ctx: typer.Context,
    repo_url: Annotated[str, Argument(help="Repository URL, e.g. https://github.com/owner/repo.")],
) -> None:
    """Reconcile every open issue and pull request of a repository."""
    settings: Settings = ctx.obj["settings"]

    async def _run() -> None:
        async with open_application(settings, ConsoleNotifier()) as app:
            decisions = await run_sync_open_items_workflow(app, repo_url)
        for decision, count in sorted(decisions.items(), key=lambda pair: pair[0].value):
            typer.echo(f"{decision.value}: {count}")

    asyncio.run(_run())


@typer_app.command(name="link-user")
def link_user_cli(
    ctx: typer.Context,
    github_username: Annotated[str, Argument(help="GitHub username of the user.")],
    slack_id: Annotated[str | None, Option(help="Slack ID of the user.")] = None,
    github_token: Annotated[str | None, Option(envvar="VOLUNTEER_GITHUB_TOKEN", help="GitHub user token of the user.")] = None,
) -> None:
    """Attach a Slack ID and/or GitHub token to a user."""
    settings: Settings = ctx.obj["settings"]

    async def _run() -> None:
        async with open_application(settings, ConsoleNotifier()) as app:
            user = await app.store.link_user_identity(github_username, slack_id=slack_id, github_token=github_token)
        typer.echo(f"Linked user {user.github_username}")

    asyncio.run(_run())


@typer_app.command(name="volunteer")
def volunteer_cli(
    ctx: typer.Context,
    github_username: Annotated[str, Argument(help="GitHub username of the volunteer.")],
    node_ids: Annotated[list[str], Argument(help="Node IDs of the candidate items, best candidate first.")],
    requesting_user_id: Annotated[str, Option(help="Messaging platform ID of the requesting user.")] = "cli",
    channel_id: Annotated[str, Option(help="Messaging platform channel the request came from.")] = "cli",
) -> None:
    """Claim the first available candidate item for a volunteer."""
    settings: Settings = ctx.obj["settings"]

    async def _run() -> AssignmentOutcome:
        async with open_application(settings, ConsoleNotifier()) as app:
            return await run_volunteer_workflow(app, github_username, node_ids, requesting_user_id, channel_id)

    outcome = asyncio.run(_run())
    if not outcome.succeeded:
        raise typer.Exit(1)


if __name__ == "__main__":
    typer_app()
