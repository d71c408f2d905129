"""Pydantic schema for the parts of GitHub webhook payloads this application reads."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

ISSUE_NODE_ID_PREFIX = "I_"
"""GitHub's documented node ID prefix for issues. Anything else is a pull request."""


class ItemKind(str, Enum):
    """The kind of remote item tracked locally."""

    ISSUE = "issue"
    PULL_REQUEST = "pull_request"


def item_kind_from_node_id(node_id: str) -> ItemKind:
    """Derive the item kind from the shape of its GitHub node ID."""
    if node_id.startswith(ISSUE_NODE_ID_PREFIX):
        return ItemKind.ISSUE
    return ItemKind.PULL_REQUEST


class WebhookUser(BaseModel):
    """A GitHub account as it appears in webhook payloads."""

    model_config = ConfigDict(extra="ignore")

    login: str


class WebhookLabel(BaseModel):
    """A label attached to an issue or pull request."""

    model_config = ConfigDict(extra="ignore")

    name: str


class WebhookRepository(BaseModel):
    """The repository a webhook event belongs to."""

    model_config = ConfigDict(extra="ignore")

    name: str
    owner: WebhookUser
    html_url: str


class WebhookItem(BaseModel):
    """An issue or pull request object from a webhook payload."""

    model_config = ConfigDict(extra="ignore")

    node_id: str
    number: int
    title: str
    body: str | None = None
    user: WebhookUser
    labels: list[WebhookLabel] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    html_url: str | None = None
    requested_reviewers: list[WebhookUser] = Field(default_factory=list)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        # Timestamps without an offset are UTC.
        return v.replace(tzinfo=timezone.utc) if v.tzinfo is None else v

    @property
    def kind(self) -> ItemKind:
        """The item kind, derived from the node ID."""
        return item_kind_from_node_id(self.node_id)

    @property
    def label_names(self) -> list[str]:
        """Label names with duplicates removed, in payload order."""
        return list(dict.fromkeys(label.name for label in self.labels))


class WebhookPayload(BaseModel):
    """A signature-verified GitHub webhook payload about an issue or pull request."""

    model_config = ConfigDict(extra="ignore")

    action: str | None = None
    issue: WebhookItem | None = None
    pull_request: WebhookItem | None = None
    repository: WebhookRepository
    sender: WebhookUser | None = None

    @property
    def item(self) -> WebhookItem:
        """The issue or pull request the event is about."""
        item = self.issue or self.pull_request
        if item is None:
            raise ValueError("Webhook payload has neither an issue nor a pull_request object")
        return item
