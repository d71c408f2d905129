"""Reconcile GitHub authentication configuration."""

from pathlib import Path

from github_volunteer_manager.configuration.exceptions import GitHubAuthenticationConfigurationUndefinedError
from github_volunteer_manager.configuration.models import GitHubAuthenticationType


async def validate_github_authentication_configuration(
    github_pat_token: str | None,
    github_app_id: int | None,
    github_app_private_key: str | None,
    github_app_private_key_path: Path | None,
) -> GitHubAuthenticationType:
    """Validates the GitHub authentication configuration.

    The app identity may be configured either with a base64-encoded private key
    or with a path to the private key file, but not both.

    Args:
        github_pat_token (str | None): The GitHub PAT token.
        github_app_id (int | None): The GitHub App ID.
        github_app_private_key (str | None): The base64-encoded GitHub App private key.
        github_app_private_key_path (Path | None): The path to the GitHub App private key.

    Raises:
        GitHubAuthenticationConfigurationUndefinedError: If the configuration is missing, incomplete or ambiguous.

    Returns:
        GitHubAuthenticationType: The type of GitHub authentication used.
    """
    app_settings_defined = bool(github_app_id or github_app_private_key or github_app_private_key_path)
    if github_pat_token and app_settings_defined:
        raise GitHubAuthenticationConfigurationUndefinedError("Both PAT and GitHub App configurations are defined. Please use one or the other.")

    if github_pat_token:
        return GitHubAuthenticationType.PAT

    if github_app_private_key and github_app_private_key_path:
        raise GitHubAuthenticationConfigurationUndefinedError(
            "Both GITHUB_APP_PRIVATE_KEY and GITHUB_APP_PRIVATE_KEY_PATH are defined. Please use one or the other."
        )

    if github_app_id and (github_app_private_key or github_app_private_key_path):
        return GitHubAuthenticationType.APP
    elif app_settings_defined:
        missing_settings: list[dict[str, str]] = []
        if not github_app_id:
            missing_settings.append(
                {
                    "name": "GitHub App ID",
                    "cli_name": "github_app_id",
                    "env_name": "GITHUB_APP_ID",
                }
            )
        if not (github_app_private_key or github_app_private_key_path):
            missing_settings.append(
                {
                    "name": "GitHub App private key",
                    "cli_name": "github_app_private_key_path",
                    "env_name": "GITHUB_APP_PRIVATE_KEY or GITHUB_APP_PRIVATE_KEY_PATH",
                }
            )
        msg = "Incomplete GitHub App configuration - missing settings include " + ", ".join(
            f"{setting['name']} (command line option {setting['cli_name']}, environment variable {setting['env_name']})"
            for setting in missing_settings
        )
        raise GitHubAuthenticationConfigurationUndefinedError(msg)
    else:
        raise GitHubAuthenticationConfigurationUndefinedError(
            "No GitHub authentication configuration provided. Please provide either a PAT or a GitHub App configuration."
        )
