"""Unit tests for the record store."""

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import StatementError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from github_volunteer_manager.schemas.webhook import ItemKind
from github_volunteer_manager.store.exceptions import ClaimAlreadyExistsError, RecordNotFoundError
from github_volunteer_manager.store.models import ItemState, VolunteerClaim, WorkflowStatus
from github_volunteer_manager.store.record_store import ItemSnapshot, RecordStore
from tests.unit.utils import REPO_URL, T1, T2, count_rows


def make_snapshot(node_id: str = "I_1", labels: tuple[str, ...] = ("bug",), updated_at: datetime = T1) -> ItemSnapshot:
    return ItemSnapshot(
        node_id=node_id,
        number=7,
        title="Crash on start",
        body="It crashes",
        kind=ItemKind.ISSUE,
        created_at=T1,
        updated_at=updated_at,
        label_names=labels,
    )


@pytest.mark.asyncio
async def test_upsert_repository_is_idempotent(store: RecordStore) -> None:
    """Test that upserting the same repository URL twice keeps one row and refreshes its fields."""
    first = await store.upsert_repository(url=REPO_URL, name="demo", owner="demo-org")
    second = await store.upsert_repository(url=REPO_URL, name="demo-renamed", owner="demo-org")

    assert first.id == second.id
    stored = await store.find_repository_by_url(REPO_URL)
    assert stored is not None
    assert stored.name == "demo-renamed"


@pytest.mark.asyncio
async def test_get_or_create_user(store: RecordStore) -> None:
    """Test that a bare user is created once per GitHub username."""
    user, created = await store.get_or_create_user("alice")
    same_user, created_again = await store.get_or_create_user("alice")

    assert created is True
    assert created_again is False
    assert same_user.id == user.id
    assert user.slack_id is None
    assert user.github_token is None


@pytest.mark.asyncio
async def test_concurrent_get_or_create_user(store: RecordStore) -> None:
    """Test that concurrent creation of the same user yields one row."""
    results = await asyncio.gather(*(store.get_or_create_user("alice") for _ in range(5)))

    assert len({user.id for user, _ in results}) == 1
    assert sum(created for _, created in results) == 1


@pytest.mark.asyncio
async def test_link_user_identity(store: RecordStore) -> None:
    """Test that identity fields are attached to an existing user."""
    user, _ = await store.get_or_create_user("alice")

    linked = await store.link_user_identity("alice", slack_id="U_ALICE", github_token="gho_alice")

    assert linked.id == user.id
    by_slack = await store.find_user_by_slack_id("U_ALICE")
    assert by_slack is not None
    assert by_slack.github_token == "gho_alice"


@pytest.mark.asyncio
async def test_get_user_missing(store: RecordStore) -> None:
    """Test that looking up a missing user by ID raises RecordNotFoundError."""
    with pytest.raises(RecordNotFoundError):
        await store.get_user(404)


@pytest.mark.asyncio
async def test_upsert_item_creates_item_and_workflow_record(store: RecordStore) -> None:
    """Test that a new item is created with its labels and an open workflow record."""
    repository = await store.upsert_repository(url=REPO_URL, name="demo", owner="demo-org")
    author, _ = await store.get_or_create_user("alice")

    item, created = await store.upsert_item(repository.id, author.id, make_snapshot(labels=("bug", "help wanted")))

    assert created is True
    assert item.state == ItemState.OPEN
    assert item.type == ItemKind.ISSUE
    assert item.label_names == {"bug", "help wanted"}
    assert item.author is not None and item.author.github_username == "alice"
    assert item.repository.url == REPO_URL
    assert item.action_item.status == WorkflowStatus.OPEN
    assert item.action_item.total_replies == 0
    assert item.created_at == T1


@pytest.mark.asyncio
async def test_upsert_item_replaces_label_snapshot(store: RecordStore) -> None:
    """Test that a later event replaces the label set instead of merging it."""
    repository = await store.upsert_repository(url=REPO_URL, name="demo", owner="demo-org")
    author, _ = await store.get_or_create_user("alice")
    first, _ = await store.upsert_item(repository.id, author.id, make_snapshot(labels=("A", "B")))

    second, created = await store.upsert_item(repository.id, author.id, make_snapshot(labels=("B", "C"), updated_at=T2))

    assert created is False
    assert second.id == first.id
    assert second.action_item.id == first.action_item.id
    assert second.label_names == {"B", "C"}
    assert second.updated_at == T2
    stored = await store.get_item_by_node_id("I_1")
    assert stored is not None
    assert stored.label_names == {"B", "C"}


@pytest.mark.asyncio
async def test_concurrent_upsert_item_creates_one_row(store: RecordStore) -> None:
    """Test that concurrent upserts of the same node ID converge on one item and one workflow record."""
    repository = await store.upsert_repository(url=REPO_URL, name="demo", owner="demo-org")
    author, _ = await store.get_or_create_user("alice")

    results = await asyncio.gather(*(store.upsert_item(repository.id, author.id, make_snapshot()) for _ in range(4)))

    assert len({item.id for item, _ in results}) == 1
    assert len({item.action_item.id for item, _ in results}) == 1
    assert sum(created for _, created in results) == 1


@pytest.mark.asyncio
async def test_create_claim_rejects_second_claim(store: RecordStore, session_factory: async_sessionmaker[AsyncSession]) -> None:
    """Test that a user can hold at most one claim."""
    repository = await store.upsert_repository(url=REPO_URL, name="demo", owner="demo-org")
    volunteer, _ = await store.get_or_create_user("bob")
    first, _ = await store.upsert_item(repository.id, None, make_snapshot(node_id="I_1"))
    second, _ = await store.upsert_item(repository.id, None, make_snapshot(node_id="I_2"))
    assigned_on = datetime(2024, 2, 1, tzinfo=timezone.utc)

    claim = await store.create_claim(volunteer.id, first.action_item.id, assigned_on)
    with pytest.raises(ClaimAlreadyExistsError) as exc_info:
        await store.create_claim(volunteer.id, second.action_item.id, assigned_on)

    assert exc_info.value.user_id == volunteer.id
    assert claim.assignee.github_username == "bob"
    assert claim.assigned_on == assigned_on
    assert await count_rows(session_factory, VolunteerClaim, assignee_id=volunteer.id) == 1
    existing = await store.find_claim_for_user(volunteer.id)
    assert existing is not None
    assert existing.action_item.github_item.node_id == "I_1"


@pytest.mark.asyncio
async def test_naive_datetimes_are_rejected(store: RecordStore) -> None:
    """Test that naive timestamps cannot be stored."""
    repository = await store.upsert_repository(url=REPO_URL, name="demo", owner="demo-org")
    snapshot = ItemSnapshot(
        node_id="I_1",
        number=1,
        title="t",
        body="",
        kind=ItemKind.ISSUE,
        created_at=datetime(2024, 1, 1),
        updated_at=datetime(2024, 1, 1),
    )

    with pytest.raises(StatementError):
        await store.upsert_item(repository.id, None, snapshot)

    assert await store.get_item_by_node_id("I_1") is None


@pytest.mark.asyncio
async def test_get_action_item(store: RecordStore) -> None:
    """Test looking up a workflow record by ID, and that missing records raise RecordNotFoundError."""
    repository = await store.upsert_repository(url=REPO_URL, name="demo", owner="demo-org")
    item, _ = await store.upsert_item(repository.id, None, make_snapshot())

    action_item = await store.get_action_item(item.action_item.id)

    assert action_item.github_item.node_id == "I_1"
    assert action_item.participants == []
    with pytest.raises(RecordNotFoundError) as exc_info:
        await store.get_action_item(404)
    assert exc_info.value.kind == "ActionItem"
