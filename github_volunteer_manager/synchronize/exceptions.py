"""Exceptions raised while synchronizing GitHub items."""

from typing import Any


class InvalidWebhookPayloadError(Exception):
    """Raised when a webhook payload lacks the fields needed to reconcile it."""

    def __init__(self, errors: list[dict[str, Any]]) -> None:
        super().__init__("Webhook payload is missing required issue or pull request fields.")
        self.errors = errors
