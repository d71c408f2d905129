"""Pydantic schema for issues and pull requests returned by the GitHub GraphQL API."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from github_volunteer_manager.schemas.webhook import ItemKind, item_kind_from_node_id


class GraphQLActor(BaseModel):
    """An actor (user, bot, ...) in a GraphQL response."""

    model_config = ConfigDict(extra="ignore")

    login: str


class GraphQLAssignee(GraphQLActor):
    """An assignee in a GraphQL response."""

    created_at: datetime | None = Field(default=None, alias="createdAt")


class GraphQLLabel(BaseModel):
    """A label in a GraphQL response."""

    model_config = ConfigDict(extra="ignore")

    name: str


class GraphQLComment(BaseModel):
    """A comment in a GraphQL response."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    author: GraphQLActor | None = None
    created_at: datetime = Field(alias="createdAt")


class GraphQLAssigneeConnection(BaseModel):
    nodes: list[GraphQLAssignee] = Field(default_factory=list)


class GraphQLLabelConnection(BaseModel):
    nodes: list[GraphQLLabel] = Field(default_factory=list)


class GraphQLActorConnection(BaseModel):
    nodes: list[GraphQLActor | None] = Field(default_factory=list)


class GraphQLCommentConnection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_count: int | None = Field(default=None, alias="totalCount")
    nodes: list[GraphQLComment] = Field(default_factory=list)


class RemoteItem(BaseModel):
    """An issue or pull request as reported by the GraphQL API."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    number: int
    title: str
    body_text: str | None = Field(default=None, alias="bodyText")
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")
    closed_at: datetime | None = Field(default=None, alias="closedAt")
    author: GraphQLActor | None = None
    assignees: GraphQLAssigneeConnection = Field(default_factory=GraphQLAssigneeConnection)
    labels: GraphQLLabelConnection = Field(default_factory=GraphQLLabelConnection)
    participants: GraphQLActorConnection = Field(default_factory=GraphQLActorConnection)
    comments: GraphQLCommentConnection = Field(default_factory=GraphQLCommentConnection)

    @property
    def kind(self) -> ItemKind:
        """The item kind, derived from the node ID."""
        return item_kind_from_node_id(self.id)

    @property
    def assignee_logins(self) -> list[str]:
        """Logins of the current assignees."""
        return [assignee.login for assignee in self.assignees.nodes]

    @property
    def total_replies(self) -> int:
        """Total number of comments, falling back to the fetched page when the count is missing."""
        if self.comments.total_count is not None:
            return self.comments.total_count
        return len(self.comments.nodes)
