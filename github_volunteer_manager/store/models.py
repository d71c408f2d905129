"""SQLAlchemy models for the record store.

Tables:
- repositories: one row per GitHub repository, keyed by HTML URL
- users: volunteers and item authors, keyed by GitHub username when known
- labels: label names shared across items
- github_items: issues and pull requests, keyed by GitHub node ID
- labels_on_items: the label snapshot of each item
- action_items: the workflow record layered on top of each item
- action_item_participants: users taking part in an action item
- volunteer_claims: at most one per user, enforced by a unique constraint
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import Column, ForeignKey, Integer, String, Table, Text, UniqueConstraint
from sqlalchemy import Enum as SAEnum
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from github_volunteer_manager.schemas.webhook import ItemKind
from github_volunteer_manager.store.types import UTCDateTime


class ItemState(str, Enum):
    """Lifecycle state of a remote item as last seen by this application."""

    OPEN = "open"
    CLOSED = "closed"


class WorkflowStatus(str, Enum):
    """Status of an item's workflow record."""

    OPEN = "open"
    CLOSED = "closed"


class Base(DeclarativeBase):
    """Declarative base for all record store models."""

    pass


labels_on_items = Table(
    "labels_on_items",
    Base.metadata,
    Column("github_item_id", Integer, ForeignKey("github_items.id", ondelete="CASCADE"), primary_key=True),
    Column("label_id", Integer, ForeignKey("labels.id", ondelete="CASCADE"), primary_key=True),
)

action_item_participants = Table(
    "action_item_participants",
    Base.metadata,
    Column("action_item_id", Integer, ForeignKey("action_items.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Repository(Base):
    """A GitHub repository that has been referenced by at least one event."""

    __tablename__ = "repositories"

    id: Mapped[int] = mapped_column(primary_key=True)
    url: Mapped[str] = mapped_column(String(512), unique=True)
    name: Mapped[str] = mapped_column(String(255))
    owner: Mapped[str] = mapped_column(String(255))

    items: Mapped[list["GithubItem"]] = relationship(back_populates="repository", lazy="raise")


class User(Base):
    """A person known to the application through GitHub, Slack, or both."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    github_username: Mapped[str | None] = mapped_column(String(255), unique=True)
    slack_id: Mapped[str | None] = mapped_column(String(64), unique=True)
    github_token: Mapped[str | None] = mapped_column(String(255))

    def __repr__(self) -> str:
        return f"User(id={self.id!r}, github_username={self.github_username!r}, slack_id={self.slack_id!r})"


class Label(Base):
    """A label name. Labels are shared between items and never deleted."""

    __tablename__ = "labels"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255), unique=True)


class GithubItem(Base):
    """A GitHub issue or pull request."""

    __tablename__ = "github_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    node_id: Mapped[str] = mapped_column(String(128), unique=True)
    repository_id: Mapped[int] = mapped_column(ForeignKey("repositories.id"))
    author_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"))
    title: Mapped[str] = mapped_column(Text)
    body: Mapped[str] = mapped_column(Text, default="")
    number: Mapped[int]
    state: Mapped[ItemState] = mapped_column(SAEnum(ItemState, native_enum=False), default=ItemState.OPEN)
    type: Mapped[ItemKind] = mapped_column(SAEnum(ItemKind, native_enum=False))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime())
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime())

    repository: Mapped[Repository] = relationship(back_populates="items", lazy="selectin")
    author: Mapped[User | None] = relationship(lazy="selectin")
    labels: Mapped[list[Label]] = relationship(secondary=labels_on_items, lazy="selectin", order_by=Label.name)
    action_item: Mapped["ActionItem"] = relationship(
        back_populates="github_item", uselist=False, lazy="selectin", cascade="all, delete-orphan"
    )

    @property
    def label_names(self) -> set[str]:
        """Names of the labels currently associated with the item."""
        return {label.name for label in self.labels}

    def __repr__(self) -> str:
        return f"GithubItem(id={self.id!r}, node_id={self.node_id!r}, number={self.number!r}, type={self.type!r})"


class ActionItem(Base):
    """The workflow record of an item: status, resolution, replies and participants."""

    __tablename__ = "action_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    github_item_id: Mapped[int] = mapped_column(ForeignKey("github_items.id", ondelete="CASCADE"), unique=True)
    status: Mapped[WorkflowStatus] = mapped_column(SAEnum(WorkflowStatus, native_enum=False), default=WorkflowStatus.OPEN)
    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    total_replies: Mapped[int] = mapped_column(default=0)

    github_item: Mapped[GithubItem] = relationship(back_populates="action_item", lazy="selectin")
    participants: Mapped[list[User]] = relationship(secondary=action_item_participants, lazy="selectin")


class VolunteerClaim(Base):
    """A user's claim on an action item. Insert-only."""

    __tablename__ = "volunteer_claims"
    __table_args__ = (UniqueConstraint("assignee_id", name="uq_volunteer_claims_assignee"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    assignee_id: Mapped[int] = mapped_column(ForeignKey("users.id"))
    action_item_id: Mapped[int] = mapped_column(ForeignKey("action_items.id"))
    assigned_on: Mapped[datetime] = mapped_column(UTCDateTime())

    assignee: Mapped[User] = relationship(lazy="selectin")
    action_item: Mapped[ActionItem] = relationship(lazy="selectin")
