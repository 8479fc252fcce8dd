import json

import httpx
import pytest

from cache import TTLCache
from config import Settings
from connectors import GitHubClient

PROFILE = {
    "login": "octocat",
    "name": "The Octocat",
    "avatar_url": "https://avatars.githubusercontent.com/u/583231",
    "bio": None,
    "followers": 42,
    "following": 9,
    "public_repos": 3,
    "created_at": "2011-01-25T18:44:36Z",
    "html_url": "https://github.com/octocat",
}


def make_repo(name, stars=0, language=None, created="2020-06-01T12:00:00Z", forks=0):
    return {
        "name": name,
        "full_name": f"octocat/{name}",
        "description": None,
        "stargazers_count": stars,
        "forks_count": forks,
        "language": language,
        "created_at": created,
        "updated_at": created,
        "html_url": f"https://github.com/octocat/{name}",
    }


def make_day(date, count, color="#ebedf0"):
    return {"date": date, "contributionCount": count, "color": color}


DEFAULT_REPOS = [
    make_repo("hello-world", stars=5, language="Go", created="2019-03-01T00:00:00Z", forks=1),
    make_repo("spoon-knife", stars=10, language="Go", created="2020-03-01T00:00:00Z", forks=4),
    make_repo("linguist", stars=2, language="TS", created="2020-07-01T00:00:00Z"),
]

DEFAULT_DAYS = [
    make_day("2024-01-06", 1),
    make_day("2024-01-07", 2),
    make_day("2024-01-08", 3),
]

DEFAULT_TOTALS = {
    "contributionsCollection": {
        "totalCommitContributions": 120,
        "totalIssueContributions": 7,
        "totalPullRequestContributions": 15,
        "totalPullRequestReviewContributions": 4,
        "totalRepositoriesWithContributedCommits": 6,
        "restrictedContributionsCount": 30,
    },
    "repositoriesContributedTo": {"nodes": [
        {"name": "linux", "url": "https://github.com/torvalds/linux", "stargazerCount": 1000,
         "forkCount": 50, "primaryLanguage": {"name": "C"}},
    ]},
    "repositories": {"nodes": [
        {"name": "spoon-knife", "stargazerCount": 10, "forkCount": 4, "createdAt": "2020-03-01T00:00:00Z"},
    ]},
}

DEFAULT_ORGS = [{"login": "github", "avatar_url": "https://avatars.githubusercontent.com/u/9919", "description": None}]


def error_response(status, message):
    return httpx.Response(status, json={"message": message, "documentation_url": "https://docs.github.com"})


class FakeGitHub:
    """httpx.MockTransport handler that imitates the GitHub endpoints we call.

    ``failures`` maps an endpoint kind (profile, repos, orgs, calendar,
    totals) to a callable taking the request and returning a Response.
    """

    def __init__(self, profile=None, repos=None, days=None, totals=None, orgs=None):
        self.profile = profile or PROFILE
        self.repos = DEFAULT_REPOS if repos is None else repos
        self.days = DEFAULT_DAYS if days is None else days
        self.totals = DEFAULT_TOTALS if totals is None else totals
        self.orgs = DEFAULT_ORGS if orgs is None else orgs
        self.failures = {}
        self.calls = []

    def kind(self, request):
        path = request.url.path
        if path == "/graphql":
            query = json.loads(request.content)["query"]
            return "calendar" if "contributionCalendar" in query else "totals"
        if path.endswith("/repos"):
            return "repos"
        if path.endswith("/orgs"):
            return "orgs"
        return "profile"

    def calls_to(self, kind):
        return [c for c in self.calls if c["kind"] == kind]

    def __call__(self, request):
        kind = self.kind(request)
        self.calls.append({
            "kind": kind,
            "auth": request.headers.get("authorization"),
            "page": request.url.params.get("page"),
        })
        if kind in self.failures:
            return self.failures[kind](request)
        if kind == "profile":
            return httpx.Response(200, json=self.profile)
        if kind == "repos":
            page = int(request.url.params.get("page", "1"))
            per_page = int(request.url.params.get("per_page", "30"))
            return httpx.Response(200, json=self.repos[(page - 1) * per_page:page * per_page])
        if kind == "orgs":
            return httpx.Response(200, json=self.orgs)
        if kind == "calendar":
            calendar = {"weeks": [{"contributionDays": self.days}]}
            return httpx.Response(200, json={"data": {"user": {
                "contributionsCollection": {"contributionCalendar": calendar}}}})
        return httpx.Response(200, json={"data": {"user": self.totals}})

    def transport(self):
        return httpx.MockTransport(self)


class FakeClock:
    def __init__(self, now=1_700_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return Settings(github_token="app-token", require_token=True, session_secret="s3cret")


@pytest.fixture
def client(fake_github, settings, clock):
    return GitHubClient.from_settings(settings, TTLCache(clock=clock), transport=fake_github.transport())
