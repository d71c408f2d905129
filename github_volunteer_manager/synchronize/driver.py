"""Builds the application's components and runs its workflows."""

import json
import time
from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from github_volunteer_manager.configuration.env import Settings
from github_volunteer_manager.configuration.projects import ProjectRegistry
from github_volunteer_manager.configuration.reconcile import validate_github_authentication_configuration
from github_volunteer_manager.github.adapter import GitHubKitAdapter
from github_volunteer_manager.github.abc import RemoteItemClientBase
from github_volunteer_manager.notify.abc import NotifierBase
from github_volunteer_manager.store.database import create_engine, create_session_factory, init_db
from github_volunteer_manager.store.record_store import RecordStore
from github_volunteer_manager.synchronize.backfill import sync_open_items
from github_volunteer_manager.synchronize.indexing import IndexerBase, IndexingScheduler, LoggingIndexer
from github_volunteer_manager.synchronize.items import ItemReconciler
from github_volunteer_manager.synchronize.models import ReconcileDecision
from github_volunteer_manager.volunteer.command import VolunteerCommandHandler
from github_volunteer_manager.volunteer.coordinator import VolunteerCoordinator
from github_volunteer_manager.volunteer.results import AssignmentOutcome
from github_volunteer_manager.webhooks.router import WebhookRouter

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


@dataclass
class Application:
    """The wired-up components of the application."""

    engine: AsyncEngine
    store: RecordStore
    projects: ProjectRegistry
    remote: RemoteItemClientBase
    indexing: IndexingScheduler
    reconciler: ItemReconciler
    coordinator: VolunteerCoordinator
    router: WebhookRouter
    volunteer_command: VolunteerCommandHandler


async def create_remote_client(settings: Settings) -> GitHubKitAdapter:
    """Create the remote item client from validated settings."""
    github_auth_type = await validate_github_authentication_configuration(
        github_pat_token=settings.GITHUB_PAT_TOKEN,
        github_app_id=settings.GITHUB_APP_ID,
        github_app_private_key=settings.GITHUB_APP_PRIVATE_KEY,
        github_app_private_key_path=settings.GITHUB_APP_PRIVATE_KEY_PATH,
    )
    return GitHubKitAdapter.create(
        github_auth_type=github_auth_type,
        github_pat_token=settings.GITHUB_PAT_TOKEN,
        github_app_id=settings.GITHUB_APP_ID,
        github_app_private_key=settings.GITHUB_APP_PRIVATE_KEY,
        github_app_private_key_path=settings.GITHUB_APP_PRIVATE_KEY_PATH,
        github_client_id=settings.GITHUB_CLIENT_ID,
        github_client_secret=settings.GITHUB_CLIENT_SECRET,
        github_api_url=settings.GITHUB_API_URL,
    )


@asynccontextmanager
async def open_application(
    settings: Settings,
    notifier: NotifierBase,
    remote: RemoteItemClientBase | None = None,
    indexer: IndexerBase | None = None,
) -> AsyncIterator[Application]:
    """Build every component from settings, and tear them down on exit.

    Pending indexing tasks are awaited before the database engine is disposed.
    """
    engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    try:
        store = RecordStore(create_session_factory(engine))
        projects = ProjectRegistry.from_yaml_file(settings.PROJECTS_PATH)
        remote = remote or await create_remote_client(settings)
        indexing = IndexingScheduler(indexer or LoggingIndexer())
        reconciler = ItemReconciler(store, projects, indexing)
        coordinator = VolunteerCoordinator(store, remote)
        app = Application(
            engine=engine,
            store=store,
            projects=projects,
            remote=remote,
            indexing=indexing,
            reconciler=reconciler,
            coordinator=coordinator,
            router=WebhookRouter(reconciler, store, projects, notifier),
            volunteer_command=VolunteerCommandHandler(coordinator, notifier, settings.DEPLOY_URL),
        )
        yield app
        await indexing.drain()
    finally:
        await engine.dispose()


async def run_init_db_workflow(database_url: str) -> None:
    """Create the record store schema."""
    engine = create_engine(database_url)
    try:
        await init_db(engine)
    finally:
        await engine.dispose()


async def run_reconcile_event_workflow(app: Application, event: str, payload: dict[str, Any]) -> ReconcileDecision | None:
    """Dispatch one webhook event through the router."""
    start_time = time.time()
    decision = await app.router.dispatch(event, payload)
    logger.info(
        "Handled webhook event",
        webhook_event=event,
        decision=decision.value if decision is not None else None,
        duration=round(time.time() - start_time, 2),
    )
    return decision


async def run_sync_open_items_workflow(app: Application, repo_url: str) -> Counter[ReconcileDecision]:
    """Reconcile every open item of a repository."""
    start_time = time.time()
    decisions = await sync_open_items(app.remote, app.reconciler, repo_url)
    logger.info("Synchronized open items", repo_url=repo_url, duration=round(time.time() - start_time, 2))
    return decisions


async def run_volunteer_workflow(
    app: Application,
    github_username: str,
    node_ids: Sequence[str],
    requesting_user_id: str,
    channel_id: str,
) -> AssignmentOutcome:
    """Resolve the volunteer and the candidate items, then run the volunteer command."""
    volunteer, _ = await app.store.get_or_create_user(github_username)
    candidates = [await app.store.get_item_by_node_id(node_id) for node_id in node_ids]
    return await app.volunteer_command.handle(candidates, volunteer, requesting_user_id, channel_id)


def load_payload(path: Path) -> dict[str, Any]:
    """Load a webhook payload from a JSON file."""
    with open(path, encoding="utf-8") as f:
        return json.load(f)  # type: ignore[no-any-return]
