"""Remote item client adapter for the githubkit library."""

from functools import wraps
from pathlib import Path
from typing import Any, Awaitable, Callable, Self, TypeVar

import structlog
from githubkit import GitHub, Response
from githubkit.auth import AppAuthStrategy, TokenAuthStrategy
from githubkit.exception import RequestFailed
from githubkit.versions.latest.models import Issue, IssueComment

from github_volunteer_manager.configuration.models import GitHubAuthenticationType
from github_volunteer_manager.github.exceptions import GitHubGraphQLError
from github_volunteer_manager.schemas.remote import RemoteItem

from .abc import RemoteItemClientBase
from .client import create_installation_token, decode_github_app_private_key, get_github_app_client, get_github_token_client

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

_ITEM_FIELDS = """
    id
    number
    title
    bodyText
    createdAt
    updatedAt
    closedAt
    author {
      login
    }
    assignees(first: 5) {
      nodes {
        login
        createdAt
      }
    }
    labels(first: 10) {
      nodes {
        name
      }
    }
    participants(first: 100) {
      nodes {
        login
      }
    }
    comments(first: 100) {
      totalCount
      nodes {
        author {
          login
        }
        createdAt
      }
    }
"""

LIST_OPEN_ITEMS_QUERY = f"""
query ($owner: String!, $name: String!) {{
  repository(owner: $owner, name: $name) {{
    issues(first: 100, states: OPEN) {{
      nodes {{
        {_ITEM_FIELDS}
      }}
    }}
    pullRequests(first: 100, states: OPEN) {{
      nodes {{
        {_ITEM_FIELDS}
      }}
    }}
  }}
}}
"""

GET_ITEM_BY_NODE_ID_QUERY = f"""
query ($id: ID!) {{
  node(id: $id) {{
    ... on Issue {{
      {_ITEM_FIELDS}
    }}
    ... on PullRequest {{
      {_ITEM_FIELDS}
    }}
  }}
}}
"""


def handle_github_422(func: F) -> F:
    """Decorator to handle GitHub 422 Unprocessable Entity errors, logging and raising with details."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except RequestFailed as exc:
            if exc.response.status_code == 422:
                try:
                    error_data = exc.response.json()
                except Exception:
                    error_data = {}
                message = error_data.get("message", "Unprocessable Entity")
                errors = error_data.get("errors", [])
                logger.error(
                    "GitHub 422 Unprocessable Entity",
                    function=func.__name__,
                    message=message,
                    errors=errors,
                    url=getattr(exc.response, "url", None),
                    status_code=422,
                )
                raise ValueError(
                    f"GitHub 422 error in {func.__name__}: {message} | errors: {errors} | url: {getattr(exc.response, 'url', None)}"
                ) from exc
            raise

    return wrapper  # type: ignore


class GitHubKitAdapter(RemoteItemClientBase):
    """Remote item client adapter for the githubkit library.

    App-identity calls authenticate with a fresh installation token per call.
    With PAT authentication (local development), the PAT stands in for the
    installation token.
    """

    def __init__(
        self,
        app_client: GitHub[AppAuthStrategy] | None,
        github_api_url: str = "https://api.github.com",
        github_pat_token: str | None = None,
    ) -> None:
        """Initialize the adapter with an already-initialized app client or a PAT."""
        if app_client is None and not github_pat_token:
            raise ValueError("GitHubKitAdapter requires either a GitHub App client or a PAT.")
        self.app_client = app_client
        self.github_api_url = github_api_url
        self.github_pat_token = github_pat_token

    @classmethod
    def create(
        cls,
        github_auth_type: GitHubAuthenticationType,
        github_pat_token: str | None = None,
        github_app_id: int | None = None,
        github_app_private_key: str | None = None,
        github_app_private_key_path: Path | None = None,
        github_client_id: str | None = None,
        github_client_secret: str | None = None,
        github_api_url: str = "https://api.github.com",
    ) -> Self:
        """Create a new adapter for the given authentication type.

        Args:
            github_auth_type: Type of authentication (PAT or APP)
            github_pat_token: Personal access token (required for PAT auth)
            github_app_id: GitHub App ID (required for APP auth)
            github_app_private_key: Base64-encoded private key (APP auth, alternative to the path)
            github_app_private_key_path: Path to private key file (APP auth, alternative to the key)
            github_client_id: OAuth client ID of the GitHub App
            github_client_secret: OAuth client secret of the GitHub App
            github_api_url: GitHub API URL (defaults to https://api.github.com)

        Returns:
            Configured GitHubKitAdapter instance
        """
        logger.info("Creating remote item client", github_api_url=github_api_url, github_auth_type=github_auth_type.value)
        if github_auth_type == GitHubAuthenticationType.PAT:
            if not github_pat_token:
                raise RuntimeError("GitHub PAT authentication requires github_pat_token in config.")
            return cls(None, github_api_url=github_api_url, github_pat_token=github_pat_token)
        if not github_app_id:
            raise RuntimeError("GitHub App authentication requires app_id in config.")
        private_key = decode_github_app_private_key(github_app_private_key, github_app_private_key_path)
        app_client = get_github_app_client(
            github_app_id,
            private_key,
            github_api_url,
            github_client_id=github_client_id,
            github_client_secret=github_client_secret,
        )
        return cls(app_client, github_api_url=github_api_url)

    def _token_client(self, token: str) -> GitHub[TokenAuthStrategy]:
        return get_github_token_client(token, self.github_api_url)

    async def _app_identity_client(self, owner: str, repo: str) -> GitHub[TokenAuthStrategy]:
        return self._token_client(await self.get_installation_token(owner, repo))

    async def get_installation_token(self, owner: str, repo: str) -> str:
        """Get a short-lived installation token for the app, or an empty string without owner and repo."""
        if not owner or not repo:
            return ""
        if self.app_client is None:
            return self.github_pat_token or ""
        return await create_installation_token(self.app_client, owner, repo)

    async def get_item(self, owner: str, repo: str, number: int) -> Issue:
        """Get an issue or pull request (as an issue) by number, as the app identity."""
        client = await self._app_identity_client(owner, repo)
        response: Response[Issue] = await client.rest.issues.async_get(owner=owner, repo=repo, issue_number=number)
        return response.parsed_data

    @handle_github_422
    async def add_assignee(self, owner: str, repo: str, number: int, username: str) -> Issue:
        """Add an assignee to an issue or pull request, as the app identity."""
        client = await self._app_identity_client(owner, repo)
        response: Response[Issue] = await client.rest.issues.async_add_assignees(
            owner=owner,
            repo=repo,
            issue_number=number,
            assignees=[username],
        )
        logger.info("Added assignee to GitHub item", owner=owner, repo=repo, number=number, assignee=username)
        return response.parsed_data

    @handle_github_422
    async def add_comment(self, owner: str, repo: str, number: int, body: str, as_token: str) -> IssueComment:
        """Comment on an issue or pull request as the identity owning ``as_token``."""
        client = self._token_client(as_token)
        response: Response[IssueComment] = await client.rest.issues.async_create_comment(
            owner=owner,
            repo=repo,
            issue_number=number,
            body=body,
        )
        logger.info("Commented on GitHub item", owner=owner, repo=repo, number=number)
        return response.parsed_data

    async def list_open_items(self, owner: str, repo: str) -> list[RemoteItem]:
        """List the first page of open issues and pull requests of a repository."""
        client = await self._app_identity_client(owner, repo)
        data: dict[str, Any] = await client.async_graphql(LIST_OPEN_ITEMS_QUERY, variables={"owner": owner, "name": repo})
        repository = data.get("repository")
        if repository is None:
            raise GitHubGraphQLError("list_open_items", f"repository {owner}/{repo} not found")
        nodes = [*repository["issues"]["nodes"], *repository["pullRequests"]["nodes"]]
        items = [RemoteItem.model_validate(node) for node in nodes]
        logger.info("Listed open GitHub items", owner=owner, repo=repo, item_count=len(items))
        return items

    async def get_item_by_node_id(self, owner: str, repo: str, node_id: str) -> RemoteItem | None:
        """Get an issue or pull request by node ID."""
        client = await self._app_identity_client(owner, repo)
        data: dict[str, Any] = await client.async_graphql(GET_ITEM_BY_NODE_ID_QUERY, variables={"id": node_id})
        node = data.get("node")
        # Nodes of any other type come back as an empty object.
        if not node:
            return None
        return RemoteItem.model_validate(node)
