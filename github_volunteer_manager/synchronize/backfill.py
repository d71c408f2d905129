"""Backfills the record store with the open items of a repository."""

from collections import Counter

import structlog

from github_volunteer_manager.github.abc import RemoteItemClientBase
from github_volunteer_manager.schemas.remote import RemoteItem
from github_volunteer_manager.schemas.webhook import ItemKind, WebhookItem, WebhookLabel, WebhookPayload, WebhookRepository, WebhookUser
from github_volunteer_manager.synchronize.items import ItemReconciler
from github_volunteer_manager.synchronize.models import ReconcileDecision
from github_volunteer_manager.utils.github import split_repository_url

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def remote_item_to_payload(remote_item: RemoteItem, repository: WebhookRepository) -> WebhookPayload | None:
    """Shape a GraphQL item like the webhook payload the reconciler consumes.

    Returns None for items without an author (deleted accounts) or timestamps.
    """
    if remote_item.author is None or remote_item.created_at is None or remote_item.updated_at is None:
        return None
    item = WebhookItem(
        node_id=remote_item.id,
        number=remote_item.number,
        title=remote_item.title,
        body=remote_item.body_text,
        user=WebhookUser(login=remote_item.author.login),
        labels=[WebhookLabel(name=label.name) for label in remote_item.labels.nodes],
        created_at=remote_item.created_at,
        updated_at=remote_item.updated_at,
    )
    if remote_item.kind == ItemKind.ISSUE:
        return WebhookPayload(issue=item, repository=repository)
    return WebhookPayload(pull_request=item, repository=repository)


async def sync_open_items(remote: RemoteItemClientBase, reconciler: ItemReconciler, repo_url: str) -> Counter[ReconcileDecision]:
    """Reconcile every open issue and pull request of a repository, returning counts per decision.

    The repository is addressed by the URL it is configured under, whatever spelling ``repo_url`` uses.
    Unmonitored repositories are not fetched.
    """
    decisions: Counter[ReconcileDecision] = Counter()
    configured_url = reconciler.projects.get_repository_url(repo_url)
    if configured_url is None:
        logger.warning("Not backfilling unmonitored repository", repo_url=repo_url)
        return decisions

    owner, name = split_repository_url(configured_url)
    repository = WebhookRepository(name=name, owner=WebhookUser(login=owner), html_url=configured_url)
    remote_items = await remote.list_open_items(owner, name)

    for remote_item in remote_items:
        payload = remote_item_to_payload(remote_item, repository)
        if payload is None:
            logger.warning("Skipping open item without author or timestamps", node_id=remote_item.id, number=remote_item.number)
            continue
        decisions[await reconciler.reconcile(payload)] += 1
    logger.info(
        "Backfilled open items",
        repo_url=configured_url,
        item_count=len(remote_items),
        decisions={decision.value: count for decision, count in decisions.items()},
    )
    return decisions
