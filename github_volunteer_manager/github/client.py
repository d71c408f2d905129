# This file is intended to hold the setup for the authenticated githubkit clients.

"""Sets up authenticated githubkit clients for the app identity and for user tokens."""

import base64
from pathlib import Path

import structlog
from githubkit import GitHub
from githubkit.auth import AppAuthStrategy, TokenAuthStrategy
from githubkit.versions.latest.models import Installation, InstallationToken

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def decode_github_app_private_key(github_app_private_key: str | None, github_app_private_key_path: Path | None) -> str:
    """Return the PEM private key of the GitHub App from either a base64 string or a file."""
    if github_app_private_key:
        return base64.b64decode(github_app_private_key).decode("utf-8")
    if github_app_private_key_path:
        with open(github_app_private_key_path, encoding="utf-8") as f:
            return f.read()
    raise RuntimeError("GitHub App authentication requires a private key or a private key path in config.")


def get_github_app_client(
    github_app_id: int,
    private_key: str,
    github_api_url: str,
    github_client_id: str | None = None,
    github_client_secret: str | None = None,
) -> GitHub[AppAuthStrategy]:
    """Returns a GitHub client authenticated as the GitHub App itself."""
    if not (github_app_id and private_key):
        raise RuntimeError("GitHub App authentication requires app_id and private_key in config.")
    auth = AppAuthStrategy(
        app_id=github_app_id,
        private_key=private_key,
        client_id=github_client_id,
        client_secret=github_client_secret,
    )
    # Disable HTTP caching to always get fresh data
    return GitHub(auth=auth, base_url=github_api_url, http_cache=False)


def get_github_token_client(token: str, github_api_url: str) -> GitHub[TokenAuthStrategy]:
    """Returns a GitHub client authenticated with a bearer token (installation or user token)."""
    if not token:
        raise RuntimeError("GitHub token authentication requires a non-empty token.")
    # Disable HTTP caching to always get fresh data
    return GitHub(auth=TokenAuthStrategy(token), base_url=github_api_url, http_cache=False)


async def create_installation_token(app_client: GitHub[AppAuthStrategy], owner: str, repo: str) -> str:
    """Exchange the app identity for a short-lived installation token scoped to a repository."""
    installation_response = await app_client.rest.apps.async_get_repo_installation(owner=owner, repo=repo)
    installation: Installation = installation_response.parsed_data
    token_response = await app_client.rest.apps.async_create_installation_access_token(installation_id=installation.id)
    token: InstallationToken = token_response.parsed_data
    logger.debug("Created installation token", owner=owner, repo=repo, installation_id=installation.id, expires_at=token.expires_at)
    return token.token
