"""Contains utility functions for GitHub interactions."""

from urllib.parse import urlparse


def normalize_repository_url(url: str) -> str:
    """Normalize a repository HTML URL so that lookups are insensitive to case and trailing slashes."""
    url = url.strip().rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url.lower()


def split_repository_url(url: str) -> tuple[str, str]:
    """Split a repository HTML URL such as https://github.com/octocat/hello into owner and name."""
    path = urlparse(url.strip()).path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    parts = path.split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Repository URL must be in the format 'https://host/owner/repo': {url}")
    return parts[0], parts[1]


def build_item_url(repo_url: str, number: int) -> str:
    """Build the human-facing URL of an issue. GitHub redirects issue URLs of pull requests."""
    return f"{repo_url.rstrip('/')}/issues/{number}"
