"""Durable storage for repositories, users, labels, items and volunteer claims.

Every public operation runs in its own transaction. Upserts are keyed on the
unique columns of each table; when a concurrent writer inserts the same key
first, the losing insert is rolled back to a savepoint and the existing row is
updated instead.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TypeVar

import structlog
from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from github_volunteer_manager.schemas.webhook import ItemKind
from github_volunteer_manager.store.exceptions import ClaimAlreadyExistsError, RecordNotFoundError
from github_volunteer_manager.store.models import (
    ActionItem,
    GithubItem,
    ItemState,
    Label,
    Repository,
    User,
    VolunteerClaim,
    WorkflowStatus,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class ItemSnapshot:
    """The state of a remote item as reported by one event."""

    node_id: str
    number: int
    title: str
    body: str
    kind: ItemKind
    created_at: datetime
    updated_at: datetime
    label_names: tuple[str, ...] = ()


class RecordStore:
    """Transactional access to the record store."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize the store with a session factory."""
        self._session_factory = session_factory

    async def _insert_or_fetch(self, session: AsyncSession, instance: T, existing_query: Select[tuple[T]]) -> tuple[T, bool]:
        """Insert ``instance`` inside a savepoint, or return the row a concurrent writer inserted first."""
        try:
            async with session.begin_nested():
                session.add(instance)
            return instance, True
        except IntegrityError:
            existing = await session.scalar(existing_query)
            if existing is None:
                raise
            return existing, False

    # Repositories
    async def upsert_repository(self, url: str, name: str, owner: str) -> Repository:
        """Create a repository by URL, or refresh its name and owner if it exists."""
        query = select(Repository).where(Repository.url == url)
        async with self._session_factory() as session, session.begin():
            repository = await session.scalar(query)
            if repository is None:
                repository, created = await self._insert_or_fetch(session, Repository(url=url, name=name, owner=owner), query)
                if created:
                    logger.info("Created repository", repo_url=url, owner=owner, name=name)
                    return repository
            repository.name = name
            repository.owner = owner
        return repository

    async def find_repository_by_url(self, url: str) -> Repository | None:
        """Find a repository by its HTML URL."""
        async with self._session_factory() as session:
            return await session.scalar(select(Repository).where(Repository.url == url))

    # Users
    async def find_user_by_github_username(self, github_username: str) -> User | None:
        """Find a user by GitHub username."""
        async with self._session_factory() as session:
            return await session.scalar(select(User).where(User.github_username == github_username))

    async def find_user_by_slack_id(self, slack_id: str) -> User | None:
        """Find a user by Slack ID."""
        async with self._session_factory() as session:
            return await session.scalar(select(User).where(User.slack_id == slack_id))

    async def get_user(self, user_id: int) -> User:
        """Get a user by ID."""
        async with self._session_factory() as session:
            user = await session.get(User, user_id)
        if user is None:
            raise RecordNotFoundError("User", user_id)
        return user

    async def get_or_create_user(self, github_username: str) -> tuple[User, bool]:
        """Find a user by GitHub username, creating a bare user with only that field if none exists."""
        query = select(User).where(User.github_username == github_username)
        async with self._session_factory() as session, session.begin():
            user = await session.scalar(query)
            if user is not None:
                return user, False
            user, created = await self._insert_or_fetch(session, User(github_username=github_username), query)
        if created:
            logger.info("Created user from GitHub username", github_username=github_username)
        return user, created

    async def link_user_identity(
        self,
        github_username: str,
        slack_id: str | None = None,
        github_token: str | None = None,
    ) -> User:
        """Attach a Slack ID and/or GitHub token to the user with the given GitHub username."""
        query = select(User).where(User.github_username == github_username)
        async with self._session_factory() as session, session.begin():
            user = await session.scalar(query)
            if user is None:
                user, _ = await self._insert_or_fetch(session, User(github_username=github_username), query)
            if slack_id is not None:
                user.slack_id = slack_id
            if github_token is not None:
                user.github_token = github_token
        logger.info("Linked user identity", github_username=github_username, has_slack_id=user.slack_id is not None)
        return user

    # Labels
    async def _get_or_create_label(self, session: AsyncSession, name: str) -> Label:
        query = select(Label).where(Label.name == name)
        label = await session.scalar(query)
        if label is None:
            label, _ = await self._insert_or_fetch(session, Label(name=name), query)
        return label

    # Items
    async def get_item_by_node_id(self, node_id: str) -> GithubItem | None:
        """Find an item by its GitHub node ID."""
        async with self._session_factory() as session:
            return await session.scalar(select(GithubItem).where(GithubItem.node_id == node_id))

    async def get_action_item(self, action_item_id: int) -> ActionItem:
        """Get a workflow record by ID."""
        async with self._session_factory() as session:
            action_item = await session.get(ActionItem, action_item_id)
        if action_item is None:
            raise RecordNotFoundError("ActionItem", action_item_id)
        return action_item

    async def upsert_item(self, repository_id: int, author_id: int | None, snapshot: ItemSnapshot) -> tuple[GithubItem, bool]:
        """Create or update an item, its label snapshot and its workflow record in one transaction.

        Returns the item and whether it was created.
        """
        query = select(GithubItem).where(GithubItem.node_id == snapshot.node_id)
        async with self._session_factory() as session, session.begin():
            labels = [await self._get_or_create_label(session, name) for name in snapshot.label_names]
            item = await session.scalar(query)
            created = False
            if item is None:
                new_item = GithubItem(
                    node_id=snapshot.node_id,
                    repository_id=repository_id,
                    author_id=author_id,
                    title=snapshot.title,
                    body=snapshot.body,
                    number=snapshot.number,
                    state=ItemState.OPEN,
                    type=snapshot.kind,
                    created_at=snapshot.created_at,
                    updated_at=snapshot.updated_at,
                    labels=labels,
                    action_item=ActionItem(status=WorkflowStatus.OPEN, total_replies=0),
                )
                item, created = await self._insert_or_fetch(session, new_item, query)
            if not created:
                self._apply_item_update(item, snapshot, labels)
            await session.flush()
            await session.refresh(item, attribute_names=["repository", "author", "labels", "action_item"])
        return item, created

    def _apply_item_update(self, item: GithubItem, snapshot: ItemSnapshot, labels: list[Label]) -> None:
        item.state = ItemState.OPEN
        item.title = snapshot.title
        item.body = snapshot.body
        item.updated_at = snapshot.updated_at
        # The label set is a snapshot: replace it wholesale.
        item.labels = labels
        if item.action_item is None:
            item.action_item = ActionItem(status=WorkflowStatus.OPEN, total_replies=0)
            return
        action_item = item.action_item
        action_item.status = WorkflowStatus.CLOSED if action_item.resolved_at is not None else WorkflowStatus.OPEN
        action_item.participants = []

    # Volunteer claims
    async def find_claim_for_user(self, user_id: int) -> VolunteerClaim | None:
        """Find the volunteer claim held by a user, if any."""
        async with self._session_factory() as session:
            return await session.scalar(select(VolunteerClaim).where(VolunteerClaim.assignee_id == user_id))

    async def create_claim(self, user_id: int, action_item_id: int, assigned_on: datetime) -> VolunteerClaim:
        """Record a new volunteer claim.

        Raises:
            ClaimAlreadyExistsError: If the user already holds a claim.
        """
        try:
            async with self._session_factory() as session, session.begin():
                claim = VolunteerClaim(assignee_id=user_id, action_item_id=action_item_id, assigned_on=assigned_on)
                session.add(claim)
                await session.flush()
                await session.refresh(claim, attribute_names=["assignee", "action_item"])
        except IntegrityError as exc:
            if await self.find_claim_for_user(user_id) is None:
                raise
            logger.warning("Rejected second volunteer claim for user", user_id=user_id, action_item_id=action_item_id)
            raise ClaimAlreadyExistsError(user_id) from exc
        logger.info("Created volunteer claim", user_id=user_id, action_item_id=action_item_id, claim_id=claim.id)
        return claim
