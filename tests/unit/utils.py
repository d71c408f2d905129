"""Shared helpers for unit tests."""

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from github_volunteer_manager.github.abc import RemoteItemClientBase
from github_volunteer_manager.notify.abc import NotifierBase
from github_volunteer_manager.schemas.remote import RemoteItem
from github_volunteer_manager.synchronize.indexing import IndexerBase

REPO_URL = "https://github.com/demo-org/demo"
UNMONITORED_REPO_URL = "https://github.com/someone/elsewhere"
T1 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
T2 = datetime(2024, 1, 2, 12, 0, tzinfo=timezone.utc)


def make_payload(
    node_id: str = "I_1",
    number: int = 7,
    login: str = "alice",
    labels: list[str] | None = None,
    updated_at: datetime = T1,
    body: str | None = "Steps to reproduce",
    repo_url: str = REPO_URL,
    kind: str = "issue",
) -> dict[str, Any]:
    """Build a webhook payload for an issue or pull request event."""
    owner, name = repo_url.rstrip("/").split("/")[-2:]
    return {
        "action": "opened",
        kind: {
            "node_id": node_id,
            "number": number,
            "title": f"Item {number}",
            "body": body,
            "user": {"login": login},
            "labels": [{"name": label, "color": "ffffff"} for label in (labels if labels is not None else ["bug"])],
            "created_at": T1.isoformat(),
            "updated_at": updated_at.isoformat(),
            "html_url": f"{repo_url}/issues/{number}",
        },
        "repository": {"name": name, "owner": {"login": owner}, "html_url": repo_url},
        "sender": {"login": login},
    }


async def count_rows(session_factory: async_sessionmaker[AsyncSession], model: type, **filters: Any) -> int:
    """Count the rows of a table matching the given column filters."""
    async with session_factory() as session:
        count = await session.scalar(select(func.count()).select_from(model).filter_by(**filters))
    return count or 0


class RecordingIndexer(IndexerBase):
    """Indexer that records the workflow records it was asked to index."""

    def __init__(self, fail: bool = False) -> None:
        self.indexed: list[int] = []
        self.fail = fail

    async def index_document(self, action_item_id: int) -> None:
        self.indexed.append(action_item_id)
        if self.fail:
            raise RuntimeError("search backend unavailable")


class FakeRemoteItemClient(RemoteItemClientBase):
    """In-memory stand-in for GitHub that records every call."""

    def __init__(self) -> None:
        self.assignees: dict[tuple[str, str, int], list[str]] = {}
        self.comments: list[tuple[str, str, int, str, str]] = []
        self.calls: list[tuple[Any, ...]] = []
        self.open_items: list[RemoteItem] = []
        self.fail_add_assignee = False
        self.fail_get_item = False

    async def get_installation_token(self, owner: str, repo: str) -> str:
        self.calls.append(("get_installation_token", owner, repo))
        return "installation-token"

    async def get_item(self, owner: str, repo: str, number: int) -> Any:
        self.calls.append(("get_item", owner, repo, number))
        if self.fail_get_item:
            raise RuntimeError("GitHub is unavailable")
        logins = self.assignees.get((owner, repo, number), [])
        return SimpleNamespace(number=number, assignees=[SimpleNamespace(login=login) for login in logins])

    async def add_assignee(self, owner: str, repo: str, number: int, username: str) -> Any:
        self.calls.append(("add_assignee", owner, repo, number, username))
        if self.fail_add_assignee:
            raise RuntimeError("GitHub rejected the assignment")
        self.assignees.setdefault((owner, repo, number), []).append(username)
        return SimpleNamespace(number=number)

    async def add_comment(self, owner: str, repo: str, number: int, body: str, as_token: str) -> Any:
        self.calls.append(("add_comment", owner, repo, number))
        self.comments.append((owner, repo, number, body, as_token))
        return SimpleNamespace(body=body)

    async def list_open_items(self, owner: str, repo: str) -> list[RemoteItem]:
        self.calls.append(("list_open_items", owner, repo))
        return self.open_items

    async def get_item_by_node_id(self, owner: str, repo: str, node_id: str) -> RemoteItem | None:
        self.calls.append(("get_item_by_node_id", owner, repo, node_id))
        return next((item for item in self.open_items if item.id == node_id), None)

    @property
    def mutating_calls(self) -> list[tuple[Any, ...]]:
        """Calls that change state on GitHub."""
        return [call for call in self.calls if call[0] in ("add_assignee", "add_comment")]


class RecordingNotifier(NotifierBase):
    """Notifier that records every message it is asked to deliver."""

    def __init__(self, fail: bool = False) -> None:
        self.messages: list[tuple[str, str]] = []
        self.ephemerals: list[tuple[str, str, str]] = []
        self.fail = fail

    async def post_message(self, channel: str, text: str) -> None:
        if self.fail:
            raise RuntimeError("messaging platform unavailable")
        self.messages.append((channel, text))

    async def post_ephemeral(self, user: str, channel: str, text: str) -> None:
        if self.fail:
            raise RuntimeError("messaging platform unavailable")
        self.ephemerals.append((user, channel, text))
