"""Exceptions raised when talking to GitHub."""


class GitHubGraphQLError(Exception):
    """Raised when a GraphQL response does not contain the expected data."""

    def __init__(self, query_name: str, detail: str) -> None:
        """Initializes the exception with the query name and a description of the problem."""
        super().__init__(f"GitHub GraphQL query {query_name} failed: {detail}")
        self.query_name = query_name
        self.detail = detail
