"""Handles a volunteer request coming from the messaging platform."""

from typing import Sequence

import structlog

from github_volunteer_manager.notify.abc import NotifierBase
from github_volunteer_manager.store.models import GithubItem, User
from github_volunteer_manager.volunteer.coordinator import VolunteerCoordinator
from github_volunteer_manager.volunteer.messages import render_outcome_message
from github_volunteer_manager.volunteer.results import AssignmentOutcome, AssignmentOutcomeKind

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class VolunteerCommandHandler:
    """Runs the coordinator and reports its outcome to the requesting user."""

    def __init__(self, coordinator: VolunteerCoordinator, notifier: NotifierBase, deploy_url: str) -> None:
        self.coordinator = coordinator
        self.notifier = notifier
        self.deploy_url = deploy_url

    async def handle(
        self,
        candidates: Sequence[GithubItem | None],
        volunteer: User,
        requesting_user_id: str,
        channel_id: str,
    ) -> AssignmentOutcome:
        """Assign the volunteer and post the outcome. Successful assignments go to the user's direct messages."""
        outcome = await self.coordinator.assign(candidates, volunteer, requesting_user_id, channel_id)
        text = render_outcome_message(outcome, self.deploy_url)
        try:
            if outcome.kind == AssignmentOutcomeKind.ASSIGNED:
                await self.notifier.post_message(channel=requesting_user_id, text=text)
            else:
                await self.notifier.post_ephemeral(user=requesting_user_id, channel=channel_id, text=text)
        except Exception as exc:
            # The assignment outcome stands even if the user cannot be told about it.
            logger.error("Failed to notify volunteer", outcome=outcome.kind.value, user_id=volunteer.id, error=str(exc))
        return outcome
