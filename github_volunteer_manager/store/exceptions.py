"""Exceptions raised by the record store."""


class RecordNotFoundError(Exception):
    """Raised when a record expected to exist is missing."""

    def __init__(self, kind: str, key: object) -> None:
        """Initializes the exception with the record kind and lookup key."""
        super().__init__(f"{kind} not found: {key}")
        self.kind = kind
        self.key = key


class ClaimAlreadyExistsError(Exception):
    """Raised when a user who already holds a volunteer claim is given another one."""

    def __init__(self, user_id: int) -> None:
        """Initializes the exception with the ID of the user holding the claim."""
        super().__init__(f"User {user_id} already holds an active volunteer claim")
        self.user_id = user_id
