"""Renders volunteer assignment outcomes into user-facing messages."""

from github_volunteer_manager.store.models import GithubItem
from github_volunteer_manager.utils.github import build_item_url
from github_volunteer_manager.volunteer.results import AssignmentOutcome, AssignmentOutcomeKind


def _item_url(item: GithubItem | None) -> str:
    if item is None:
        return ""
    return build_item_url(item.repository.url, item.number)


def render_outcome_message(outcome: AssignmentOutcome, deploy_url: str) -> str:
    """Render an assignment outcome. No internal identifiers or errors are included."""
    if outcome.kind == AssignmentOutcomeKind.NEEDS_IDENTITY_LINK:
        return (
            "You need to connect your GitHub account first. "
            f"Please go to <{deploy_url.rstrip('/')}/auth?id={outcome.requesting_user_id}|this link> to connect your GitHub account."
        )
    if outcome.kind == AssignmentOutcomeKind.ALREADY_VOLUNTEERING:
        return "You can only volunteer for one issue at a time. Please finish your current issue first:\n\n" + _item_url(outcome.item)
    if outcome.kind == AssignmentOutcomeKind.ASSIGNED and outcome.item is not None:
        item = outcome.item
        return (
            f"You have been assigned to issue #{item.number} on <{item.repository.url}|{item.repository.name}>.\n\n"
            + _item_url(item)
        )
    if outcome.kind == AssignmentOutcomeKind.REMOTE_CONFLICT_SKIPPED_ALL:
        return "Someone else has already picked up every issue on offer. Please try again later."
    if outcome.kind == AssignmentOutcomeKind.NO_ELIGIBLE_CANDIDATE:
        return "There are no open issues to volunteer for right now. Please try again later."
    return "Something went wrong while assigning you an issue. Please try again later."
