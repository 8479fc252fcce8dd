import asyncio

import httpx
import pytest

from cache import TTLCache
from conftest import FakeGitHub, error_response, make_repo
from connectors import DEGRADE, FAIL, FAILURE_POLICY, GitHubClient, resolve_token
from errors import UpstreamError


def run(coro):
    return asyncio.run(coro)


def client_for(fake, fallback="app-token", clock=None):
    cache = TTLCache(clock=clock) if clock else TTLCache()
    return GitHubClient(cache, fallback_token=fallback, transport=fake.transport())


def test_resolve_token_prefers_user_token():
    assert resolve_token("user", "app") == "user"
    assert resolve_token(None, "app") == "app"
    assert resolve_token("", "") is None
    assert resolve_token(None, None) is None


def test_failure_policy_table():
    assert FAILURE_POLICY == {
        "profile": FAIL,
        "repositories": FAIL,
        "contribution_totals": FAIL,
        "contribution_calendar": DEGRADE,
        "organizations": DEGRADE,
    }


def test_fetch_profile_decodes_and_sends_headers(client, fake_github):
    profile = run(client.fetch_profile("octocat", "user-token"))
    assert profile.login == "octocat"
    assert profile.followers == 42
    assert profile.created_at.year == 2011
    assert fake_github.calls[0]["auth"] == "Bearer user-token"


def test_anonymous_requests_have_no_authorization_header(fake_github):
    client = client_for(fake_github, fallback=None)
    run(client.fetch_profile("octocat"))
    assert fake_github.calls[0]["auth"] is None


def test_fallback_token_used_without_user_token(client, fake_github):
    run(client.fetch_organizations("octocat"))
    assert fake_github.calls[0]["auth"] == "Bearer app-token"


def test_profile_failure_carries_status_text(client, fake_github):
    fake_github.failures["profile"] = lambda req: error_response(404, "Not Found")
    with pytest.raises(UpstreamError) as exc:
        run(client.fetch_profile("ghost"))
    assert "Failed to fetch user: Not Found" in str(exc.value)
    assert exc.value.status_code == 404
    assert exc.value.operation == "profile"


def test_profile_is_cached(client, fake_github, clock):
    first = run(client.fetch_profile("octocat"))
    clock.advance(299)
    second = run(client.fetch_profile("octocat"))
    assert second is first
    assert len(fake_github.calls_to("profile")) == 1
    clock.advance(2)
    run(client.fetch_profile("octocat"))
    assert len(fake_github.calls_to("profile")) == 2


def test_fresh_bypasses_cache_read(client, fake_github):
    run(client.fetch_profile("octocat"))
    run(client.fetch_profile("octocat", fresh=True))
    assert len(fake_github.calls_to("profile")) == 2


def test_repositories_paginate_until_short_page():
    fake = FakeGitHub(repos=[make_repo(f"r{i}", stars=i) for i in range(250)])
    repos = run(client_for(fake).fetch_repositories("octocat"))
    assert len(repos) == 250
    assert [c["page"] for c in fake.calls_to("repos")] == ["1", "2", "3"]
    assert repos[0].name == "r0"
    assert repos[-1].name == "r249"


def test_repositories_exact_page_multiple_fetches_empty_page():
    fake = FakeGitHub(repos=[make_repo(f"r{i}") for i in range(100)])
    repos = run(client_for(fake).fetch_repositories("octocat"))
    assert len(repos) == 100
    assert [c["page"] for c in fake.calls_to("repos")] == ["1", "2"]


def test_repositories_fail_on_any_bad_page():
    fake = FakeGitHub(repos=[make_repo(f"r{i}") for i in range(150)])

    def second_page_fails(request):
        if request.url.params["page"] == "2":
            return error_response(502, "Server Error")
        return httpx.Response(200, json=[make_repo(f"r{i}") for i in range(100)])

    fake.failures["repos"] = second_page_fails
    client = client_for(fake)
    with pytest.raises(UpstreamError, match="Failed to fetch repos"):
        run(client.fetch_repositories("octocat"))
    assert client.cache.get("repos:octocat") is None


def test_malformed_repo_payload_is_rejected():
    fake = FakeGitHub()
    fake.failures["repos"] = lambda req: httpx.Response(200, json=[{"name": "no-created-at"}])
    with pytest.raises(UpstreamError, match="Malformed repos payload"):
        run(client_for(fake).fetch_repositories("octocat"))


def test_calendar_is_flattened_in_order(client):
    days = run(client.fetch_contribution_calendar("octocat"))
    assert [d.date.isoformat() for d in days] == ["2024-01-06", "2024-01-07", "2024-01-08"]
    assert [d.contribution_count for d in days] == [1, 2, 3]


def test_calendar_failure_degrades_to_empty_and_is_not_cached(client, fake_github):
    fake_github.failures["calendar"] = lambda req: error_response(502, "Bad Gateway")
    assert run(client.fetch_contribution_calendar("octocat")) == []
    assert client.cache.get("contributions:octocat") is None


def test_calendar_transport_error_degrades(client, fake_github):
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    fake_github.failures["calendar"] = boom
    assert run(client.fetch_contribution_calendar("octocat")) == []


def test_organizations_failure_degrades(client, fake_github):
    fake_github.failures["orgs"] = lambda req: error_response(500, "boom")
    assert run(client.fetch_organizations("octocat")) == []


def test_organizations_decoded(client):
    orgs = run(client.fetch_organizations("octocat"))
    assert [o.login for o in orgs] == ["github"]


def test_totals_decoded(client):
    totals = run(client.fetch_contribution_totals("octocat"))
    assert totals.total_commits == 120
    assert totals.total_private_contributions == 30
    assert totals.contributed_repos[0].primary_language == "C"
    assert totals.owned_repos[0].stars == 10


def test_totals_retry_once_with_fallback_on_401(client, fake_github):
    def reject_user_token(request):
        if request.headers.get("authorization") == "Bearer expired-user-token":
            return error_response(401, "Bad credentials")
        return httpx.Response(200, json={"data": {"user": fake_github.totals}})

    fake_github.failures["totals"] = reject_user_token
    totals = run(client.fetch_contribution_totals("octocat", "expired-user-token"))
    assert totals.total_commits == 120
    assert [c["auth"] for c in fake_github.calls_to("totals")] == [
        "Bearer expired-user-token", "Bearer app-token",
    ]


def test_totals_retry_failure_raises(client, fake_github):
    fake_github.failures["totals"] = lambda req: error_response(401, "Bad credentials")
    with pytest.raises(UpstreamError, match="Bad credentials"):
        run(client.fetch_contribution_totals("octocat", "expired-user-token"))
    assert len(fake_github.calls_to("totals")) == 2


def test_totals_no_retry_when_fallback_was_used(client, fake_github):
    fake_github.failures["totals"] = lambda req: error_response(401, "Bad credentials")
    with pytest.raises(UpstreamError):
        run(client.fetch_contribution_totals("octocat"))
    assert len(fake_github.calls_to("totals")) == 1


def test_totals_no_retry_without_fallback():
    fake = FakeGitHub()
    fake.failures["totals"] = lambda req: error_response(401, "Bad credentials")
    with pytest.raises(UpstreamError):
        run(client_for(fake, fallback=None).fetch_contribution_totals("octocat", "user-token"))
    assert len(fake.calls_to("totals")) == 1


def test_totals_rate_limit_is_not_retried(client, fake_github):
    fake_github.failures["totals"] = lambda req: error_response(403, "API rate limit exceeded for user")
    with pytest.raises(UpstreamError, match="rate limit"):
        run(client.fetch_contribution_totals("octocat", "user-token"))
    assert len(fake_github.calls_to("totals")) == 1


def test_totals_graphql_errors_raise(client, fake_github):
    fake_github.failures["totals"] = lambda req: httpx.Response(200, json={
        "data": {"user": None},
        "errors": [{"type": "NOT_FOUND", "message": "Could not resolve to a User with the login of 'ghost'."}],
    })
    with pytest.raises(UpstreamError, match="Could not resolve"):
        run(client.fetch_contribution_totals("ghost"))


def test_calendar_with_malformed_collection_degrades(client, fake_github):
    fake_github.failures["calendar"] = lambda req: httpx.Response(
        200, json={"data": {"user": {"contributionsCollection": "oops"}}},
    )
    assert run(client.fetch_contribution_calendar("octocat")) == []
    assert client.cache.get("contributions:octocat") is None


def test_calendar_with_null_collection_is_empty(client, fake_github):
    fake_github.failures["calendar"] = lambda req: httpx.Response(
        200, json={"data": {"user": {"contributionsCollection": None}}},
    )
    assert run(client.fetch_contribution_calendar("octocat")) == []


def test_totals_with_malformed_user_raise_upstream_error(client, fake_github):
    fake_github.failures["totals"] = lambda req: httpx.Response(200, json={"data": {"user": ["octocat"]}})
    with pytest.raises(UpstreamError, match="Malformed contributions payload"):
        run(client.fetch_contribution_totals("octocat"))


def test_totals_with_wrongly_typed_section_raise_upstream_error(client, fake_github):
    fake_github.failures["totals"] = lambda req: httpx.Response(200, json={"data": {"user": {
        "contributionsCollection": {"totalCommitContributions": 3},
        "repositoriesContributedTo": {"nodes": "none"},
    }}})
    with pytest.raises(UpstreamError, match="Malformed contributions payload"):
        run(client.fetch_contribution_totals("octocat"))


def test_totals_tolerate_null_sections_and_nodes(client, fake_github):
    fake_github.failures["totals"] = lambda req: httpx.Response(200, json={"data": {"user": {
        "contributionsCollection": {"totalCommitContributions": 3, "restrictedContributionsCount": None},
        "repositoriesContributedTo": None,
        "repositories": {"nodes": [None, {"name": "spoon-knife", "stargazerCount": 10}]},
    }}})
    totals = run(client.fetch_contribution_totals("octocat"))
    assert totals.total_commits == 3
    assert totals.total_private_contributions == 0
    assert totals.contributed_repos == []
    assert [r.name for r in totals.owned_repos] == ["spoon-knife"]


def test_low_rate_limit_is_logged(client, fake_github, caplog):
    fake_github.failures["profile"] = lambda req: httpx.Response(
        200, json=fake_github.profile, headers={"X-RateLimit-Remaining": "3", "X-RateLimit-Reset": "1700000000"},
    )
    with caplog.at_level("WARNING", logger="octodash"):
        run(client.fetch_profile("octocat"))
    assert "rate limit low" in caplog.text
