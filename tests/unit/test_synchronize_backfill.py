"""Unit tests for backfilling open items."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from github_volunteer_manager.schemas.remote import RemoteItem
from github_volunteer_manager.schemas.webhook import ItemKind, WebhookRepository, WebhookUser
from github_volunteer_manager.store.models import Repository
from github_volunteer_manager.store.record_store import RecordStore
from github_volunteer_manager.synchronize.backfill import remote_item_to_payload, sync_open_items
from github_volunteer_manager.synchronize.items import ItemReconciler
from github_volunteer_manager.synchronize.models import ReconcileDecision
from tests.unit.utils import REPO_URL, UNMONITORED_REPO_URL, FakeRemoteItemClient, count_rows, make_payload


def make_remote_item(node_id: str, number: int, author: str | None = "alice", labels: list[str] | None = None) -> RemoteItem:
    return RemoteItem.model_validate(
        {
            "id": node_id,
            "number": number,
            "title": f"Item {number}",
            "bodyText": "Body",
            "createdAt": "2024-01-01T12:00:00Z",
            "updatedAt": "2024-01-02T12:00:00Z",
            "author": {"login": author} if author else None,
            "labels": {"nodes": [{"name": label} for label in labels or []]},
        }
    )


def test_remote_item_to_payload_issue() -> None:
    """Test that a GraphQL issue is shaped like an issue event."""
    repository = WebhookRepository(name="demo", owner=WebhookUser(login="demo-org"), html_url=REPO_URL)

    payload = remote_item_to_payload(make_remote_item("I_1", 1, labels=["bug"]), repository)

    assert payload is not None
    assert payload.issue is not None
    assert payload.pull_request is None
    assert payload.item.label_names == ["bug"]


def test_remote_item_to_payload_pull_request() -> None:
    """Test that a GraphQL pull request is shaped like a pull request event."""
    repository = WebhookRepository(name="demo", owner=WebhookUser(login="demo-org"), html_url=REPO_URL)

    payload = remote_item_to_payload(make_remote_item("PR_1", 2), repository)

    assert payload is not None
    assert payload.pull_request is not None
    assert payload.item.kind == ItemKind.PULL_REQUEST


def test_remote_item_to_payload_without_author() -> None:
    """Test that items from deleted accounts are skipped."""
    repository = WebhookRepository(name="demo", owner=WebhookUser(login="demo-org"), html_url=REPO_URL)

    assert remote_item_to_payload(make_remote_item("I_1", 1, author=None), repository) is None


@pytest.mark.asyncio
async def test_sync_open_items(remote: FakeRemoteItemClient, reconciler: ItemReconciler, store: RecordStore) -> None:
    """Test that every open item is reconciled and counted by decision."""
    # Given
    remote.open_items = [
        make_remote_item("I_1", 1, labels=["bug"]),
        make_remote_item("PR_2", 2),
        make_remote_item("I_3", 3, author="mia"),
        make_remote_item("I_4", 4, author=None),
    ]

    # When
    decisions = await sync_open_items(remote, reconciler, REPO_URL)

    # Then
    assert remote.calls == [("list_open_items", "demo-org", "demo")]
    assert decisions[ReconcileDecision.CREATED] == 2
    assert decisions[ReconcileDecision.SKIPPED_MAINTAINER] == 1
    assert sum(decisions.values()) == 3
    pull_request = await store.get_item_by_node_id("PR_2")
    assert pull_request is not None
    assert pull_request.type == ItemKind.PULL_REQUEST
    assert await store.get_item_by_node_id("I_3") is None


@pytest.mark.asyncio
async def test_sync_open_items_twice_updates(remote: FakeRemoteItemClient, reconciler: ItemReconciler) -> None:
    """Test that a second backfill updates the items created by the first."""
    remote.open_items = [make_remote_item("I_1", 1)]

    await sync_open_items(remote, reconciler, REPO_URL)
    decisions = await sync_open_items(remote, reconciler, REPO_URL)

    assert decisions == {ReconcileDecision.UPDATED: 1}


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "repo_url",
    [
        pytest.param("https://github.com/Demo-Org/demo/", id="mixed case with trailing slash"),
        pytest.param("https://github.com/demo-org/demo.git", id="git suffix"),
    ],
)
async def test_sync_open_items_url_variant_reuses_repository(
    remote: FakeRemoteItemClient,
    reconciler: ItemReconciler,
    store: RecordStore,
    session_factory: async_sessionmaker[AsyncSession],
    repo_url: str,
) -> None:
    """Test that backfilling by another spelling of a monitored URL reuses the configured repository."""
    # Given
    await reconciler.reconcile(make_payload())
    remote.open_items = [make_remote_item("I_1", 7), make_remote_item("I_2", 8)]

    # When
    decisions = await sync_open_items(remote, reconciler, repo_url)

    # Then
    assert decisions == {ReconcileDecision.UPDATED: 1, ReconcileDecision.CREATED: 1}
    assert remote.calls == [("list_open_items", "demo-org", "demo")]
    assert await count_rows(session_factory, Repository) == 1
    repository = await store.find_repository_by_url(REPO_URL)
    assert repository is not None
    assert repository.owner == "demo-org"
    created = await store.get_item_by_node_id("I_2")
    assert created is not None
    assert created.repository_id == repository.id


@pytest.mark.asyncio
async def test_sync_open_items_unmonitored_repository(
    remote: FakeRemoteItemClient, reconciler: ItemReconciler, session_factory: async_sessionmaker[AsyncSession]
) -> None:
    """Test that an unmonitored repository is not fetched."""
    remote.open_items = [make_remote_item("I_1", 1)]

    decisions = await sync_open_items(remote, reconciler, UNMONITORED_REPO_URL)

    assert decisions == {}
    assert remote.calls == []
    assert await count_rows(session_factory, Repository) == 0
