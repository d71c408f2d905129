"""Models for project, maintainer, and GitHub authentication configuration."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class GitHubAuthenticationType(str, Enum):
    """Enum for GitHub authentication types."""

    PAT = "pat"
    APP = "app"


class MaintainerModel(BaseModel):
    """A maintainer of a monitored project.

    Items authored by a maintainer are never tracked as workflow items, and
    maintainers are the first place review requests are resolved against.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    github: str | None = None
    slack: str | None = None


class ProjectModel(BaseModel):
    """A monitored project and the repositories that belong to it."""

    model_config = ConfigDict(frozen=True)

    name: str
    repositories: tuple[str, ...] = Field(default_factory=tuple)
    maintainers: tuple[MaintainerModel, ...] = Field(default_factory=tuple)


class ProjectsYAMLModel(BaseModel):
    """Pydantic model for the projects YAML file."""

    model_config = ConfigDict(frozen=True)

    maintainers: tuple[MaintainerModel, ...] = Field(default_factory=tuple)
    projects: tuple[ProjectModel, ...] = Field(default_factory=tuple)
