"""Coordinates a volunteer's exclusive claim on one open GitHub item.

A volunteer may hold at most one claim. Two guards enforce this: an in-process
lock per volunteer held from the existing-claim check until the claim is
written, and the unique constraint on the claim's assignee in the record store
(which also covers other processes).

The check that a candidate has no assignees on GitHub is best-effort. Another
actor can still assign the item between the check and our assignment; the
volunteering comment posted before assigning leaves a trail in that case.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Sequence

import structlog

from github_volunteer_manager.github.abc import RemoteItemClientBase
from github_volunteer_manager.store.exceptions import ClaimAlreadyExistsError
from github_volunteer_manager.store.models import GithubItem, User, VolunteerClaim
from github_volunteer_manager.store.record_store import RecordStore
from github_volunteer_manager.utils.github import build_item_url
from github_volunteer_manager.utils.locks import KeyedLock
from github_volunteer_manager.volunteer.results import AssignmentOutcome, AssignmentOutcomeKind

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

VOLUNTEERING_COMMENT = "I'm volunteering to work on this issue."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VolunteerCoordinator:
    """Claims the first available candidate item for a volunteer."""

    def __init__(
        self,
        store: RecordStore,
        remote: RemoteItemClientBase,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the coordinator with its record store and remote item client."""
        self.store = store
        self.remote = remote
        self.clock = clock
        self._volunteer_locks = KeyedLock("volunteer")

    async def assign(
        self,
        candidates: Sequence[GithubItem | None],
        volunteer: User,
        requesting_user_id: str | None = None,
        channel_id: str | None = None,
    ) -> AssignmentOutcome:
        """Try to claim one of ``candidates``, in order, for ``volunteer``.

        ``None`` candidates stand for items with no backing GitHub item and are
        skipped. The returned outcome carries ``requesting_user_id`` and
        ``channel_id`` so the caller can report it.
        """
        log = logger.bind(user_id=volunteer.id, github_username=volunteer.github_username, candidate_count=len(candidates))

        def outcome(kind: AssignmentOutcomeKind, **kwargs: Any) -> AssignmentOutcome:
            return AssignmentOutcome(kind, requesting_user_id=requesting_user_id, channel_id=channel_id, **kwargs)

        if not volunteer.github_token or not volunteer.github_username:
            log.info("Volunteer has not linked a GitHub account")
            return outcome(AssignmentOutcomeKind.NEEDS_IDENTITY_LINK)

        async with self._volunteer_locks.hold(str(volunteer.id)):
            existing_claim = await self.store.find_claim_for_user(volunteer.id)
            if existing_claim is not None:
                log.info("Volunteer already holds a claim", claim_id=existing_claim.id)
                return outcome(AssignmentOutcomeKind.ALREADY_VOLUNTEERING, item=existing_claim.action_item.github_item, claim=existing_claim)

            skipped: list[str] = []
            try:
                claimed_item = await self._claim_first_available(candidates, volunteer, skipped)
            except Exception as exc:
                log.error("Failed to claim a GitHub item for volunteer", error=str(exc), skipped_node_ids=skipped, exc_info=True)
                return outcome(AssignmentOutcomeKind.FAILED, skipped_node_ids=tuple(skipped), error=exc)

            if claimed_item is None:
                if skipped:
                    log.info("Every candidate is already assigned on GitHub", skipped_node_ids=skipped)
                    return outcome(AssignmentOutcomeKind.REMOTE_CONFLICT_SKIPPED_ALL, skipped_node_ids=tuple(skipped))
                log.info("No candidate has a GitHub item to claim")
                return outcome(AssignmentOutcomeKind.NO_ELIGIBLE_CANDIDATE)

            try:
                claim = await self._record_claim(volunteer, claimed_item)
            except ClaimAlreadyExistsError:
                existing_claim = await self.store.find_claim_for_user(volunteer.id)
                log.warning(
                    "Volunteer was assigned on GitHub but another process recorded a claim first",
                    node_id=claimed_item.node_id,
                    item_url=self._item_url(claimed_item),
                )
                return outcome(
                    AssignmentOutcomeKind.ALREADY_VOLUNTEERING,
                    item=existing_claim.action_item.github_item if existing_claim else None,
                    claim=existing_claim,
                    skipped_node_ids=tuple(skipped),
                )
            except Exception as exc:
                log.error(
                    "Volunteer was assigned on GitHub but the claim could not be recorded",
                    node_id=claimed_item.node_id,
                    item_url=self._item_url(claimed_item),
                    error=str(exc),
                    exc_info=True,
                )
                return outcome(AssignmentOutcomeKind.FAILED, item=claimed_item, skipped_node_ids=tuple(skipped), error=exc)

        log.info("Volunteer assigned", node_id=claimed_item.node_id, number=claimed_item.number, claim_id=claim.id)
        return outcome(AssignmentOutcomeKind.ASSIGNED, item=claimed_item, claim=claim, skipped_node_ids=tuple(skipped))

    async def _claim_first_available(self, candidates: Sequence[GithubItem | None], volunteer: User, skipped: list[str]) -> GithubItem | None:
        """Claim the first candidate nobody is assigned to on GitHub.

        Appends the node IDs of candidates that already had assignees to ``skipped``.
        """
        for candidate in candidates:
            if candidate is None or candidate.action_item is None:
                continue
            owner, repo, number = candidate.repository.owner, candidate.repository.name, candidate.number

            remote_item = await self.remote.get_item(owner, repo, number)
            if remote_item.assignees:
                logger.info(
                    "Skipping candidate already assigned on GitHub",
                    node_id=candidate.node_id,
                    assignees=[assignee.login for assignee in remote_item.assignees],
                )
                skipped.append(candidate.node_id)
                continue

            # volunteer.github_token is checked by the caller.
            await self.remote.add_comment(owner, repo, number, VOLUNTEERING_COMMENT, as_token=volunteer.github_token or "")
            try:
                await self.remote.add_assignee(owner, repo, number, volunteer.github_username or "")
            except Exception:
                logger.warning(
                    "Posted volunteering comment but could not assign the volunteer",
                    node_id=candidate.node_id,
                    item_url=self._item_url(candidate),
                    github_username=volunteer.github_username,
                )
                raise
            return candidate
        return None

    async def _record_claim(self, volunteer: User, item: GithubItem) -> VolunteerClaim:
        return await self.store.create_claim(user_id=volunteer.id, action_item_id=item.action_item.id, assigned_on=self.clock())

    @staticmethod
    def _item_url(item: GithubItem) -> str:
        return build_item_url(item.repository.url, item.number)
