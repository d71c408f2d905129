"""Read-only lookup of monitored projects and their maintainers.

The registry is built once at startup from the projects YAML file and then
handed to the components that need it. It is never mutated afterwards.
"""

from pathlib import Path
from types import MappingProxyType
from typing import Mapping

import structlog
from pydantic import ValidationError

from github_volunteer_manager.configuration.exceptions import ProjectsConfigurationError
from github_volunteer_manager.configuration.models import MaintainerModel, ProjectModel, ProjectsYAMLModel
from github_volunteer_manager.utils.github import normalize_repository_url
from github_volunteer_manager.utils.yaml import load_yaml_file

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class ProjectRegistry:
    """Maps repository URLs to monitored projects and maintainer identities."""

    def __init__(self, projects: ProjectsYAMLModel) -> None:
        """Index the projects by normalized repository URL."""
        self._model = projects
        projects_by_url: dict[str, ProjectModel] = {}
        configured_urls: dict[str, str] = {}
        for project in projects.projects:
            for repo_url in project.repositories:
                key = normalize_repository_url(repo_url)
                if key in projects_by_url and projects_by_url[key].name != project.name:
                    raise ProjectsConfigurationError(
                        "<in-memory>",
                        f"repository {repo_url} is listed under both {projects_by_url[key].name} and {project.name}",
                    )
                projects_by_url[key] = project
                configured_urls.setdefault(key, repo_url.strip().rstrip("/").removesuffix(".git"))
        self._projects_by_url: Mapping[str, ProjectModel] = MappingProxyType(projects_by_url)
        self._configured_urls: Mapping[str, str] = MappingProxyType(configured_urls)

    @classmethod
    def from_yaml_file(cls, path: Path) -> "ProjectRegistry":
        """Load the registry from a projects YAML file."""
        if not path.exists():
            raise ProjectsConfigurationError(str(path), "file not found")
        content = load_yaml_file(path) or {}
        try:
            model = ProjectsYAMLModel.model_validate(content)
        except ValidationError as exc:
            raise ProjectsConfigurationError(str(path), str(exc)) from exc
        registry = cls(model)
        logger.info(
            "Loaded projects configuration",
            path=str(path),
            project_count=len(model.projects),
            repository_count=len(registry._projects_by_url),
        )
        return registry

    @property
    def global_maintainers(self) -> tuple[MaintainerModel, ...]:
        """Maintainers that apply to every monitored repository."""
        return self._model.maintainers

    def get_project(self, repo_url: str) -> ProjectModel | None:
        """Return the project a repository belongs to, or None if it is not monitored."""
        return self._projects_by_url.get(normalize_repository_url(repo_url))

    def get_repository_url(self, repo_url: str) -> str | None:
        """Return the URL a monitored repository is configured under, or None if it is not monitored.

        Every spelling of a repository URL (case, trailing slash, .git suffix) maps to this one URL.
        """
        return self._configured_urls.get(normalize_repository_url(repo_url))

    def get_project_name(self, repo_url: str) -> str | None:
        """Return the name of the project a repository belongs to, or None if it is not monitored."""
        project = self.get_project(repo_url)
        return project.name if project is not None else None

    def get_maintainers(self, repo_url: str) -> tuple[MaintainerModel, ...]:
        """Return the maintainers of a repository: its project's maintainers plus global maintainers."""
        project = self.get_project(repo_url)
        if project is None:
            return ()
        return project.maintainers + self._model.maintainers

    def is_maintainer(self, repo_url: str, github_username: str | None) -> bool:
        """Whether a GitHub username maintains the given repository."""
        if not github_username:
            return False
        return any(
            maintainer.github is not None and maintainer.github.lower() == github_username.lower()
            for maintainer in self.get_maintainers(repo_url)
        )

    def find_maintainer(self, github_username: str | None = None, slack_id: str | None = None) -> MaintainerModel | None:
        """Find a maintainer of any project by GitHub username or Slack ID."""
        for maintainer in self._all_maintainers():
            if github_username and maintainer.github and maintainer.github.lower() == github_username.lower():
                return maintainer
            if slack_id and maintainer.slack == slack_id:
                return maintainer
        return None

    def _all_maintainers(self) -> list[MaintainerModel]:
        maintainers = list(self._model.maintainers)
        for project in self._model.projects:
            maintainers.extend(project.maintainers)
        return maintainers
