"""Base ABC for messaging platform notifiers."""

from abc import ABC, abstractmethod


class NotifierBase(ABC):
    """Delivers user-facing messages to a messaging platform."""

    @abstractmethod
    async def post_message(self, channel: str, text: str) -> None:
        """Post a message to a channel or a user's direct-message channel."""
        pass

    @abstractmethod
    async def post_ephemeral(self, user: str, channel: str, text: str) -> None:
        """Post a message in a channel that only ``user`` can see."""
        pass
