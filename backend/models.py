"""Pydantic models for upstream GitHub payloads and the dashboard response.

Upstream payloads are decoded into these models at the connector boundary,
so everything past ``connectors`` works with typed objects instead of raw
JSON. Field aliases carry the GitHub spelling; dumps use the snake_case
field names.
"""

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _Upstream(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


# ---------------------------------------------------------------------------
# REST payloads
# ---------------------------------------------------------------------------

class Profile(_Upstream):
    login: str
    name: str | None = None
    avatar_url: str = ""
    bio: str | None = None
    followers: int = 0
    following: int = 0
    public_repos: int = 0
    created_at: dt.datetime
    html_url: str = ""


class Repository(_Upstream):
    name: str
    full_name: str = ""
    description: str | None = None
    stars: int = Field(default=0, alias="stargazers_count")
    forks: int = Field(default=0, alias="forks_count")
    language: str | None = None
    created_at: dt.datetime
    updated_at: dt.datetime | None = None
    html_url: str = ""

    @field_validator("language", mode="before")
    @classmethod
    def blank_language(cls, v):
        # GitHub reports no detected language as null; treat "" the same
        return v or None


class Organization(_Upstream):
    login: str
    avatar_url: str = ""
    description: str | None = None


class ErrorBody(_Upstream):
    """Body GitHub sends with non-2xx REST and GraphQL responses."""

    message: str = ""
    documentation_url: str | None = None


# ---------------------------------------------------------------------------
# GraphQL payloads
# ---------------------------------------------------------------------------

def _empty_if_null(value):
    # GraphQL sends null for objects it could not resolve
    return {} if value is None else value


def _present_nodes(value):
    # Connection nodes may be null when the viewer cannot see a repository
    if value is None:
        return []
    if isinstance(value, list):
        return [node for node in value if node is not None]
    return value


class GraphQLError(_Upstream):
    message: str = ""
    type: str | None = None


class ContributionDay(_Upstream):
    date: dt.date
    contribution_count: int = Field(default=0, alias="contributionCount")
    color: str = ""


class CalendarWeek(_Upstream):
    contribution_days: list[ContributionDay] = Field(default_factory=list, alias="contributionDays")


class ContributionCalendar(_Upstream):
    weeks: list[CalendarWeek] = Field(default_factory=list)

    def days(self) -> list[ContributionDay]:
        """Flatten week -> day nesting into one ordered sequence."""
        return [day for week in self.weeks for day in week.contribution_days]


class CalendarCollection(_Upstream):
    contribution_calendar: ContributionCalendar = Field(
        default_factory=ContributionCalendar, alias="contributionCalendar"
    )

    @field_validator("contribution_calendar", mode="before")
    @classmethod
    def null_calendar(cls, v):
        return _empty_if_null(v)


class CalendarUser(_Upstream):
    contributions_collection: CalendarCollection = Field(
        default_factory=CalendarCollection, alias="contributionsCollection"
    )

    @field_validator("contributions_collection", mode="before")
    @classmethod
    def null_collection(cls, v):
        return _empty_if_null(v)


def _primary_language(value):
    if isinstance(value, dict):
        return value.get("name")
    return value


class ContributedRepository(_Upstream):
    name: str
    url: str = ""
    stars: int = Field(default=0, alias="stargazerCount")
    forks: int = Field(default=0, alias="forkCount")
    primary_language: str | None = Field(default=None, alias="primaryLanguage")

    @field_validator("primary_language", mode="before")
    @classmethod
    def flatten_language(cls, v):
        return _primary_language(v)


class OwnedRepository(_Upstream):
    name: str
    stars: int = Field(default=0, alias="stargazerCount")
    forks: int = Field(default=0, alias="forkCount")
    created_at: dt.datetime | None = Field(default=None, alias="createdAt")


class ContributionsSummary(_Upstream):
    total_commits: int = Field(default=0, alias="totalCommitContributions")
    total_issues: int = Field(default=0, alias="totalIssueContributions")
    total_prs: int = Field(default=0, alias="totalPullRequestContributions")
    total_reviews: int = Field(default=0, alias="totalPullRequestReviewContributions")
    total_repos_with_contributions: int = Field(default=0, alias="totalRepositoriesWithContributedCommits")
    total_private_contributions: int = Field(default=0, alias="restrictedContributionsCount")

    @field_validator("*", mode="before")
    @classmethod
    def null_count(cls, v):
        return 0 if v is None else v


class ContributedConnection(_Upstream):
    nodes: list[ContributedRepository] = Field(default_factory=list)

    @field_validator("nodes", mode="before")
    @classmethod
    def drop_null_nodes(cls, v):
        return _present_nodes(v)


class OwnedConnection(_Upstream):
    nodes: list[OwnedRepository] = Field(default_factory=list)

    @field_validator("nodes", mode="before")
    @classmethod
    def drop_null_nodes(cls, v):
        return _present_nodes(v)


class TotalsUser(_Upstream):
    contributions_collection: ContributionsSummary = Field(
        default_factory=ContributionsSummary, alias="contributionsCollection"
    )
    repositories_contributed_to: ContributedConnection = Field(
        default_factory=ContributedConnection, alias="repositoriesContributedTo"
    )
    repositories: OwnedConnection = Field(default_factory=OwnedConnection)

    @field_validator("contributions_collection", "repositories_contributed_to", "repositories", mode="before")
    @classmethod
    def null_sections(cls, v):
        return _empty_if_null(v)


class CalendarData(_Upstream):
    user: CalendarUser | None = None


class TotalsData(_Upstream):
    user: TotalsUser | None = None


class GraphQLEnvelope(_Upstream):
    """``{data, errors}`` wrapper. Subclasses declare ``data`` for their query."""

    errors: list[GraphQLError] = Field(default_factory=list)

    def user(self):
        data = getattr(self, "data", None)
        return data.user if data is not None else None


class CalendarEnvelope(GraphQLEnvelope):
    data: CalendarData | None = None


class TotalsEnvelope(GraphQLEnvelope):
    data: TotalsData | None = None


class ContributionTotals(BaseModel):
    total_commits: int = 0
    total_issues: int = 0
    total_prs: int = 0
    total_reviews: int = 0
    total_repos_with_contributions: int = 0
    total_private_contributions: int = 0
    contributed_repos: list[ContributedRepository] = Field(default_factory=list)
    owned_repos: list[OwnedRepository] = Field(default_factory=list)

    @classmethod
    def from_graphql_user(cls, user: TotalsUser) -> "ContributionTotals":
        cc = user.contributions_collection
        return cls(
            **cc.model_dump(),
            contributed_repos=user.repositories_contributed_to.nodes,
            owned_repos=user.repositories.nodes,
        )


# ---------------------------------------------------------------------------
# Derived statistics and the unified response
# ---------------------------------------------------------------------------

class TimelinePoint(BaseModel):
    period: str
    count: int


class WeeklyActivity(BaseModel):
    date: dt.date
    count: int


class RepoStatsSummary(BaseModel):
    total_stars: int
    total_forks: int
    total_languages: int
    total_repos: int


class DashboardStats(BaseModel):
    total_repos: int
    total_languages: int
    total_stars: int
    total_forks: int
    total_commits: int
    total_issues: int
    total_prs: int
    total_reviews: int
    total_private_contributions: int


class RepoSection(BaseModel):
    total: int
    top: list[Repository]
    timeline: list[TimelinePoint]


class CommitSection(BaseModel):
    activity: list[WeeklyActivity]
    contributions: list[ContributionDay]


class AggregateResponse(BaseModel):
    """One pipeline run's output. Frozen once assembled."""

    model_config = ConfigDict(frozen=True)

    user: Profile
    stats: DashboardStats
    repos: RepoSection
    languages: dict[str, int]
    commits: CommitSection
    organizations: list[Organization]
    last_updated: dt.datetime
