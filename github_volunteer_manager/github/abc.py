"""Base ABC for remote item clients."""

from abc import ABC, abstractmethod
from typing import Any

from github_volunteer_manager.schemas.remote import RemoteItem


class RemoteItemClientBase(ABC):
    """Fetches and mutates issues and pull requests on the remote platform.

    Every call is a network operation that authenticates on its own and may
    fail transiently. Implementations do not retry.
    """

    @abstractmethod
    async def get_installation_token(self, owner: str, repo: str) -> str:
        """Get a short-lived token for the app identity, scoped to a repository."""
        pass

    @abstractmethod
    async def get_item(self, owner: str, repo: str, number: int) -> Any:
        """Get an issue or pull request by number. The result exposes ``assignees``."""
        pass

    @abstractmethod
    async def add_assignee(self, owner: str, repo: str, number: int, username: str) -> Any:
        """Add an assignee to an issue or pull request as the app identity."""
        pass

    @abstractmethod
    async def add_comment(self, owner: str, repo: str, number: int, body: str, as_token: str) -> Any:
        """Comment on an issue or pull request as the identity that owns ``as_token``."""
        pass

    @abstractmethod
    async def list_open_items(self, owner: str, repo: str) -> list[RemoteItem]:
        """List open issues and pull requests of a repository."""
        pass

    @abstractmethod
    async def get_item_by_node_id(self, owner: str, repo: str, node_id: str) -> RemoteItem | None:
        """Get an issue or pull request by node ID, or None if the node is neither."""
        pass
