"""Contains results of volunteer assignment attempts."""

from dataclasses import dataclass, field
from enum import Enum

from github_volunteer_manager.store.models import GithubItem, VolunteerClaim


class AssignmentOutcomeKind(str, Enum):
    """The possible outcomes of a volunteer assignment attempt."""

    ASSIGNED = "assigned"
    ALREADY_VOLUNTEERING = "already_volunteering"
    NEEDS_IDENTITY_LINK = "needs_identity_link"
    NO_ELIGIBLE_CANDIDATE = "no_eligible_candidate"
    REMOTE_CONFLICT_SKIPPED_ALL = "remote_conflict_skipped_all"
    FAILED = "failed"


@dataclass(frozen=True)
class AssignmentOutcome:
    """The outcome of one volunteer assignment attempt.

    ``item`` is the claimed item for ASSIGNED and the item of the existing
    claim for ALREADY_VOLUNTEERING. ``skipped_node_ids`` lists candidates that
    were passed over because they already had assignees on GitHub.
    """

    kind: AssignmentOutcomeKind
    requesting_user_id: str | None = None
    channel_id: str | None = None
    item: GithubItem | None = None
    claim: VolunteerClaim | None = None
    skipped_node_ids: tuple[str, ...] = field(default_factory=tuple)
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        """Whether a new claim was recorded."""
        return self.kind == AssignmentOutcomeKind.ASSIGNED
