"""Routes verified GitHub webhook events to their handlers.

Each event is handled as an independent unit of work. Failures are logged
here, at the boundary, and never propagate to the webhook delivery layer.
"""

from typing import Any

import structlog

from github_volunteer_manager.configuration.projects import ProjectRegistry
from github_volunteer_manager.notify.abc import NotifierBase
from github_volunteer_manager.schemas.webhook import WebhookPayload
from github_volunteer_manager.store.record_store import RecordStore
from github_volunteer_manager.synchronize.exceptions import InvalidWebhookPayloadError
from github_volunteer_manager.synchronize.items import ItemReconciler, parse_webhook_payload
from github_volunteer_manager.synchronize.models import ReconcileDecision

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

RECONCILE_EVENTS = frozenset(
    {
        "issues.opened",
        "issues.edited",
        "issues.reopened",
        "pull_request.opened",
        "pull_request.edited",
        "pull_request.reopened",
    }
)
REVIEW_REQUESTED_EVENT = "pull_request.review_requested"


def event_name(event: str, payload: dict[str, Any]) -> str:
    """Combine the X-GitHub-Event header with the payload action, e.g. ``issues.opened``."""
    action = payload.get("action")
    return f"{event}.{action}" if action and "." not in event else event


class WebhookRouter:
    """Dispatches webhook events by name."""

    def __init__(self, reconciler: ItemReconciler, store: RecordStore, projects: ProjectRegistry, notifier: NotifierBase) -> None:
        self.reconciler = reconciler
        self.store = store
        self.projects = projects
        self.notifier = notifier

    async def dispatch(self, name: str, payload: dict[str, Any]) -> ReconcileDecision | None:
        """Handle one event. Returns the reconcile decision for reconciled events, otherwise None."""
        log = logger.bind(event=name)
        try:
            if name in RECONCILE_EVENTS:
                return await self.reconciler.reconcile(payload)
            if name == REVIEW_REQUESTED_EVENT:
                await self.notify_requested_reviewers(parse_webhook_payload(payload))
                return None
        except InvalidWebhookPayloadError as exc:
            log.warning("Ignoring webhook event with an invalid payload", errors=exc.errors)
            return None
        except Exception as exc:
            log.error("Failed to handle webhook event", error=str(exc), exc_info=True)
            return None
        log.debug("Ignoring unhandled webhook event")
        return None

    async def _resolve_messaging_id(self, github_username: str) -> str | None:
        maintainer = self.projects.find_maintainer(github_username=github_username)
        if maintainer is not None and maintainer.slack:
            return maintainer.slack
        user = await self.store.find_user_by_github_username(github_username)
        return user.slack_id if user is not None else None

    async def notify_requested_reviewers(self, event: WebhookPayload) -> int:
        """Tell each requested reviewer about the pull request. Returns how many were notified."""
        pull_request = event.item
        project_name = self.projects.get_project_name(event.repository.html_url)
        if project_name is None:
            logger.info("Ignoring review request from unmonitored repository", repo_url=event.repository.html_url)
            return 0

        sender = event.sender.login if event.sender is not None else "someone"
        notified = 0
        for reviewer in pull_request.requested_reviewers:
            messaging_id = await self._resolve_messaging_id(reviewer.login)
            if messaging_id is None:
                logger.info("No messaging identity found for requested reviewer", reviewer=reviewer.login, node_id=pull_request.node_id)
                continue
            await self.notifier.post_message(
                channel=messaging_id,
                text=f"You have been requested to review a pull request on {project_name} by {sender}.\n{pull_request.html_url}",
            )
            notified += 1
        logger.info("Notified requested reviewers", node_id=pull_request.node_id, notified=notified)
        return notified
