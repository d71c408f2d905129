"""Models for synchronization decisions."""

from enum import Enum


class ReconcileDecision(str, Enum):
    """What reconciling one webhook event did."""

    CREATED = "created"
    UPDATED = "updated"
    SKIPPED_UNMONITORED = "skipped_unmonitored"
    SKIPPED_MAINTAINER = "skipped_maintainer"
