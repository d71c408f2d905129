"""Contains exceptions raised when reconciling application configuration."""


class GitHubAuthenticationConfigurationUndefinedError(Exception):
    """Raised when the GitHub authentication configuration is undefined."""

    pass


class ProjectsConfigurationError(Exception):
    """Raised when the projects YAML file cannot be loaded or is invalid."""

    def __init__(self, path: str, reason: str) -> None:
        """Initializes the exception with the offending path and the reason."""
        super().__init__(f"Invalid projects configuration at {path}: {reason}")
        self.path = path
        self.reason = reason
