"""Contains reconciliation logic for GitHub issues and pull requests.

An inbound event is merged into the record store with upserts keyed on stable
identifiers (repository URL, GitHub username, node ID), so delivering the same
event any number of times converges on the same stored state.
"""

from typing import Any

import structlog
from pydantic import ValidationError

from github_volunteer_manager.configuration.projects import ProjectRegistry
from github_volunteer_manager.schemas.webhook import WebhookItem, WebhookPayload
from github_volunteer_manager.store.record_store import ItemSnapshot, RecordStore
from github_volunteer_manager.synchronize.exceptions import InvalidWebhookPayloadError
from github_volunteer_manager.synchronize.indexing import IndexingScheduler
from github_volunteer_manager.synchronize.models import ReconcileDecision
from github_volunteer_manager.utils.locks import KeyedLock

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def parse_webhook_payload(payload: WebhookPayload | dict[str, Any]) -> WebhookPayload:
    """Validate a raw webhook payload."""
    if isinstance(payload, WebhookPayload):
        return payload
    try:
        parsed = WebhookPayload.model_validate(payload)
    except ValidationError as exc:
        raise InvalidWebhookPayloadError(exc.errors(include_url=False)) from exc
    if parsed.issue is None and parsed.pull_request is None:
        raise InvalidWebhookPayloadError([{"loc": ("issue",), "msg": "either issue or pull_request is required"}])
    return parsed


def build_item_snapshot(item: WebhookItem) -> ItemSnapshot:
    """Build the stored snapshot of a webhook issue or pull request."""
    return ItemSnapshot(
        node_id=item.node_id,
        number=item.number,
        title=item.title,
        body=item.body or "",
        kind=item.kind,
        created_at=item.created_at,
        updated_at=item.updated_at,
        label_names=tuple(item.label_names),
    )


class ItemReconciler:
    """Merges inbound issue and pull request events into the record store."""

    def __init__(self, store: RecordStore, projects: ProjectRegistry, indexing: IndexingScheduler) -> None:
        """Initialize the reconciler with its store, project lookup and indexing collaborator."""
        self.store = store
        self.projects = projects
        self.indexing = indexing
        self._item_locks = KeyedLock("github-item")

    async def reconcile(self, payload: WebhookPayload | dict[str, Any]) -> ReconcileDecision:
        """Reconcile one issue or pull request event.

        Events from unmonitored repositories and items authored by maintainers
        are dropped without error.
        """
        event = parse_webhook_payload(payload)
        item = event.item
        repository = event.repository
        log = logger.bind(node_id=item.node_id, repo_url=repository.html_url, number=item.number, kind=item.kind.value)

        project_name = self.projects.get_project_name(repository.html_url)
        if project_name is None:
            log.info("Ignoring event from unmonitored repository")
            return ReconcileDecision.SKIPPED_UNMONITORED

        # Checked before any write so maintainer events leave the store untouched.
        if self.projects.is_maintainer(repository.html_url, item.user.login):
            log.info("Ignoring item authored by a maintainer", project=project_name, author=item.user.login)
            return ReconcileDecision.SKIPPED_MAINTAINER

        # Keyed on the configured URL so every spelling of it maps to one row.
        repo_url = self.projects.get_repository_url(repository.html_url) or repository.html_url
        db_repository = await self.store.upsert_repository(
            url=repo_url,
            name=repository.name,
            owner=repository.owner.login,
        )

        author, _ = await self.store.get_or_create_user(item.user.login)

        async with self._item_locks.hold(item.node_id):
            github_item, created = await self.store.upsert_item(
                repository_id=db_repository.id,
                author_id=author.id,
                snapshot=build_item_snapshot(item),
            )

        decision = ReconcileDecision.CREATED if created else ReconcileDecision.UPDATED
        log.info(
            "Reconciled GitHub item",
            project=project_name,
            decision=decision.value,
            labels=sorted(github_item.label_names),
            action_item_id=github_item.action_item.id,
        )
        self.indexing.schedule(github_item.action_item.id)
        return decision
