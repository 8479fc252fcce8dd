"""GitHub API connector: profile, repos and orgs over REST, contributions over GraphQL."""

import logging

import httpx
import pydantic

from cache import TTLCache
from errors import UpstreamError
from models import (
    CalendarEnvelope,
    ContributionDay,
    ContributionTotals,
    ErrorBody,
    GraphQLEnvelope,
    Organization,
    Profile,
    Repository,
    TotalsEnvelope,
)

logger = logging.getLogger("octodash")

GH_API = "https://api.github.com"
GH_GRAPHQL = "https://api.github.com/graphql"
ACCEPT = "application/vnd.github.v3+json"
USER_AGENT = "OctoDash/0.1"
PAGE_SIZE = 100
RATE_LIMIT_WARN_BELOW = 10

# What happens when an operation fails: FAIL raises UpstreamError to the
# caller, DEGRADE logs and hands back an empty list (which is not cached).
FAIL = "fail"
DEGRADE = "degrade"

FAILURE_POLICY = {
    "profile": FAIL,
    "repositories": FAIL,
    "contribution_totals": FAIL,
    "contribution_calendar": DEGRADE,
    "organizations": DEGRADE,
}

CALENDAR_QUERY = """
query($username: String!) {
  user(login: $username) {
    contributionsCollection {
      contributionCalendar {
        weeks {
          contributionDays {
            date
            contributionCount
            color
          }
        }
      }
    }
  }
}
"""

TOTALS_QUERY = """
query($username: String!) {
  user(login: $username) {
    contributionsCollection {
      totalCommitContributions
      totalIssueContributions
      totalPullRequestContributions
      totalPullRequestReviewContributions
      totalRepositoriesWithContributedCommits
      restrictedContributionsCount
    }
    repositoriesContributedTo(first: 100, contributionTypes: [COMMIT, ISSUE, PULL_REQUEST]) {
      nodes {
        name
        url
        stargazerCount
        forkCount
        primaryLanguage { name }
      }
    }
    repositories(first: 100, orderBy: {field: STARGAZERS, direction: DESC}) {
      nodes {
        name
        stargazerCount
        forkCount
        createdAt
      }
    }
  }
}
"""

_REPO_LIST = pydantic.TypeAdapter(list[Repository])
_ORG_LIST = pydantic.TypeAdapter(list[Organization])


def resolve_token(user_token: str | None, fallback_token: str | None) -> str | None:
    """Per-request user token wins over the app token; None means anonymous."""
    return user_token or fallback_token or None


def _headers(token: str | None) -> dict:
    headers = {"Accept": ACCEPT, "User-Agent": USER_AGENT}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


def _describe_failure(resp: httpx.Response) -> str:
    """Reason phrase plus GitHub's own message, e.g. 'Unauthorized (Bad credentials)'."""
    reason = resp.reason_phrase or str(resp.status_code)
    try:
        body = ErrorBody.model_validate(resp.json())
    except (ValueError, pydantic.ValidationError):
        return reason
    return f"{reason} ({body.message})" if body.message else reason


def _json(resp: httpx.Response, what: str):
    try:
        return resp.json()
    except ValueError as e:
        raise UpstreamError(f"Malformed {what} payload from GitHub: {e}", resp.status_code) from e


def _decode(validator, payload, what: str):
    """Validate an upstream payload, turning schema errors into UpstreamError."""
    try:
        if isinstance(validator, pydantic.TypeAdapter):
            return validator.validate_python(payload)
        return validator.model_validate(payload)
    except pydantic.ValidationError as e:
        raise UpstreamError(
            f"Malformed {what} payload from GitHub: {e.error_count()} validation error(s)"
        ) from e


def _graphql_user(envelope: GraphQLEnvelope):
    user = envelope.user()
    if user is None:
        if envelope.errors:
            detail = "; ".join(err.message for err in envelope.errors[:3])
        else:
            detail = "User not found"
        raise UpstreamError(f"GitHub GraphQL error: {detail}")
    return user


class GitHubClient:
    """Cached, authenticated access to the handful of GitHub endpoints we use.

    Every public ``fetch_*`` method reads through ``cache`` under its own key
    and applies ``FAILURE_POLICY`` to failures. ``transport`` is handed to
    httpx unchanged so tests can plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        cache: TTLCache,
        fallback_token: str | None = None,
        api_url: str = GH_API,
        graphql_url: str = GH_GRAPHQL,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.cache = cache
        self.fallback_token = fallback_token or None
        self.api_url = api_url.rstrip("/")
        self.graphql_url = graphql_url
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings, cache: TTLCache, transport=None) -> "GitHubClient":
        return cls(
            cache,
            fallback_token=settings.github_token,
            api_url=settings.api_url,
            graphql_url=settings.graphql_url,
            timeout=settings.http_timeout,
            transport=transport,
        )

    # -- plumbing ----------------------------------------------------------

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _send(self, client: httpx.AsyncClient, method: str, url: str, token: str | None,
                    what: str, **kwargs) -> httpx.Response:
        try:
            resp = await client.request(method, url, headers=_headers(token), **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamError(f"Failed to fetch {what}: {e}") from e
        remaining = resp.headers.get("X-RateLimit-Remaining")
        if remaining is not None and remaining.isdigit() and int(remaining) < RATE_LIMIT_WARN_BELOW:
            logger.warning("github rate limit low: %s remaining (reset=%s)",
                           remaining, resp.headers.get("X-RateLimit-Reset", "?"))
        return resp

    async def _post_graphql(self, client: httpx.AsyncClient, query: str, username: str,
                            token: str | None) -> httpx.Response:
        payload = {"query": query, "variables": {"username": username}}
        return await self._send(client, "POST", self.graphql_url, token, "contributions", json=payload)

    async def _cached(self, operation: str, key: str, username: str, load, fresh: bool):
        if not fresh:
            cached = self.cache.get(key)
            if cached is not None:
                return cached
        try:
            value = await load()
        except UpstreamError as e:
            e.operation = operation
            if FAILURE_POLICY[operation] == DEGRADE:
                logger.warning("github %s DEGRADED user=%s: %s", operation, username, e)
                return []
            logger.error("github %s FAILED user=%s: %s", operation, username, e)
            raise
        self.cache.set(key, value)
        return value

    # -- loaders -----------------------------------------------------------

    async def _load_profile(self, username: str, token: str | None) -> Profile:
        async with self._client() as client:
            resp = await self._send(client, "GET", f"{self.api_url}/users/{username}", token, "user")
        if resp.is_error:
            raise UpstreamError(f"Failed to fetch user: {_describe_failure(resp)}", resp.status_code)
        return _decode(Profile, _json(resp, "user"), "user")

    async def _load_repositories(self, username: str, token: str | None) -> list[Repository]:
        repos: list[Repository] = []
        page = 1
        async with self._client() as client:
            while True:
                resp = await self._send(
                    client, "GET", f"{self.api_url}/users/{username}/repos", token, "repos",
                    params={"per_page": PAGE_SIZE, "page": page, "sort": "updated"},
                )
                if resp.is_error:
                    raise UpstreamError(f"Failed to fetch repos: {_describe_failure(resp)}", resp.status_code)
                batch = _decode(_REPO_LIST, _json(resp, "repos"), "repos")
                repos.extend(batch)
                if len(batch) < PAGE_SIZE:
                    break
                page += 1
        return repos

    async def _load_calendar(self, username: str, token: str | None) -> list[ContributionDay]:
        async with self._client() as client:
            resp = await self._post_graphql(client, CALENDAR_QUERY, username, token)
        if resp.is_error:
            raise UpstreamError(f"GitHub GraphQL error: {_describe_failure(resp)}", resp.status_code)
        envelope = _decode(CalendarEnvelope, _json(resp, "calendar"), "calendar")
        user = _graphql_user(envelope)
        return user.contributions_collection.contribution_calendar.days()

    async def _load_totals(self, username: str, user_token: str | None) -> ContributionTotals:
        async with self._client() as client:
            resp = await self._post_graphql(
                client, TOTALS_QUERY, username, resolve_token(user_token, self.fallback_token)
            )
            if (resp.status_code == 401 and user_token and self.fallback_token
                    and user_token != self.fallback_token):
                logger.warning("github contribution_totals UNAUTHORIZED user=%s, retrying with fallback token",
                               username)
                resp = await self._post_graphql(client, TOTALS_QUERY, username, self.fallback_token)
        if resp.is_error:
            raise UpstreamError(f"GitHub GraphQL error: {_describe_failure(resp)}", resp.status_code)
        envelope = _decode(TotalsEnvelope, _json(resp, "contributions"), "contributions")
        return ContributionTotals.from_graphql_user(_graphql_user(envelope))

    async def _load_organizations(self, username: str, token: str | None) -> list[Organization]:
        async with self._client() as client:
            resp = await self._send(client, "GET", f"{self.api_url}/users/{username}/orgs", token,
                                    "organizations")
        if resp.is_error:
            raise UpstreamError(f"Failed to fetch organizations: {_describe_failure(resp)}", resp.status_code)
        return _decode(_ORG_LIST, _json(resp, "organizations"), "organizations")

    # -- public operations -------------------------------------------------

    async def fetch_profile(self, username: str, token: str | None = None, fresh: bool = False) -> Profile:
        auth = resolve_token(token, self.fallback_token)
        return await self._cached("profile", f"user:{username.lower()}", username,
                                  lambda: self._load_profile(username, auth), fresh)

    async def fetch_repositories(self, username: str, token: str | None = None,
                                 fresh: bool = False) -> list[Repository]:
        auth = resolve_token(token, self.fallback_token)
        return await self._cached("repositories", f"repos:{username.lower()}", username,
                                  lambda: self._load_repositories(username, auth), fresh)

    async def fetch_contribution_calendar(self, username: str, token: str | None = None,
                                          fresh: bool = False) -> list[ContributionDay]:
        auth = resolve_token(token, self.fallback_token)
        return await self._cached("contribution_calendar", f"contributions:{username.lower()}", username,
                                  lambda: self._load_calendar(username, auth), fresh)

    async def fetch_contribution_totals(self, username: str, token: str | None = None,
                                        fresh: bool = False) -> ContributionTotals:
        return await self._cached("contribution_totals", f"fullContrib:{username.lower()}", username,
                                  lambda: self._load_totals(username, token), fresh)

    async def fetch_organizations(self, username: str, token: str | None = None,
                                  fresh: bool = False) -> list[Organization]:
        auth = resolve_token(token, self.fallback_token)
        return await self._cached("organizations", f"orgs:{username.lower()}", username,
                                  lambda: self._load_organizations(username, auth), fresh)
