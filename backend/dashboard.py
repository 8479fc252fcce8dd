"""Dashboard pipeline: validate, fetch in parallel, aggregate, assemble."""

import asyncio
import datetime as dt
import logging
import re

import aggregator
from config import Settings
from connectors import GitHubClient
from errors import ConfigurationError, UpstreamError, ValidationError
from models import AggregateResponse, CommitSection, RepoSection

logger = logging.getLogger("octodash")

# GitHub logins: alphanumerics and hyphens, no leading/trailing hyphen, max 39.
# Older accounts may still have consecutive hyphens.
USERNAME_RE = re.compile(r"^[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,37}[a-zA-Z0-9])?$")

RATE_LIMIT_MESSAGE = "GitHub API rate limit exceeded. Please wait a few minutes and try again."
BAD_CREDENTIALS_MESSAGE = "Invalid or expired GitHub token. Please sign in again or refresh the server token."

# Order matters: the first failure in this order is the one reported.
_CRITICAL = ("profile", "repositories", "contribution_totals")


def validate_username(username: str | None) -> str:
    username = (username or "").strip()
    if not username:
        raise ValidationError("Username is required")
    if not USERNAME_RE.match(username):
        raise ValidationError("Invalid GitHub username format")
    return username


def check_configuration(settings: Settings):
    if settings.require_token and not settings.github_token:
        raise ConfigurationError("Server configuration error: Missing GitHub token.")


async def build_dashboard(
    username: str,
    client: GitHubClient,
    settings: Settings,
    user_token: str | None = None,
    fresh: bool = False,
) -> AggregateResponse:
    """Run one full pipeline pass for ``username`` and return the payload.

    Raises ValidationError, ConfigurationError or UpstreamError; nothing is
    fetched until the first two checks pass.
    """
    username = validate_username(username)
    check_configuration(settings)

    logger.info("dashboard FETCH user=%s auth=%s fresh=%s", username,
                "user" if user_token else ("app" if settings.github_token else "none"), fresh)

    results = await asyncio.gather(
        client.fetch_profile(username, user_token, fresh=fresh),
        client.fetch_repositories(username, user_token, fresh=fresh),
        client.fetch_contribution_totals(username, user_token, fresh=fresh),
        client.fetch_contribution_calendar(username, user_token, fresh=fresh),
        client.fetch_organizations(username, user_token, fresh=fresh),
        return_exceptions=True,
    )
    for operation, result in zip(_CRITICAL, results):
        if isinstance(result, BaseException):
            if not isinstance(result, UpstreamError):
                logger.error("dashboard %s UNEXPECTED user=%s: %r", operation, username, result)
            raise result

    profile, repos, totals, calendar, organizations = results
    if isinstance(calendar, BaseException):
        logger.error("dashboard contribution_calendar UNEXPECTED user=%s: %r", username, calendar)
        calendar = []
    if isinstance(organizations, BaseException):
        logger.error("dashboard organizations UNEXPECTED user=%s: %r", username, organizations)
        organizations = []

    summary = aggregator.repo_stats_summary(repos)
    return AggregateResponse(
        user=profile,
        stats=aggregator.build_stats(summary, totals),
        repos=RepoSection(
            total=summary.total_repos,
            top=aggregator.top_repositories(repos, settings.top_repos_limit),
            timeline=aggregator.creation_timeline(repos),
        ),
        languages=aggregator.language_histogram(repos),
        commits=CommitSection(
            activity=aggregator.weekly_commit_summary(calendar),
            contributions=calendar,
        ),
        organizations=organizations,
        last_updated=dt.datetime.now(dt.timezone.utc),
    )


def classify_error(exc: Exception) -> tuple[int, str]:
    """Map a pipeline failure to (HTTP status, client-facing message)."""
    if isinstance(exc, ValidationError):
        return 400, str(exc)
    if isinstance(exc, ConfigurationError):
        return 500, str(exc)
    message = str(exc) or "Unknown error"
    lowered = message.lower()
    if "bad credentials" in lowered:
        return 401, BAD_CREDENTIALS_MESSAGE
    if "rate limit" in lowered:
        return 429, RATE_LIMIT_MESSAGE
    return 500, message
