"""Derived statistics over repositories and contribution data.

Every function here is pure: it reads the collections it is given and
returns new values, so the same inputs always give the same dashboard.
"""

import datetime as dt
from collections import Counter

from models import (
    ContributionDay,
    ContributionTotals,
    DashboardStats,
    Repository,
    RepoStatsSummary,
    TimelinePoint,
    WeeklyActivity,
)

TOP_REPOS_DEFAULT = 5
WEEKS_SHOWN = 52


def language_histogram(repos: list[Repository]) -> dict[str, int]:
    """Count repositories per primary language, skipping repos without one."""
    counts: dict[str, int] = {}
    for repo in repos:
        if repo.language is not None:
            counts[repo.language] = counts.get(repo.language, 0) + 1
    return counts


def top_repositories(repos: list[Repository], n: int = TOP_REPOS_DEFAULT) -> list[Repository]:
    """Most-starred repositories first. Ties keep their input order."""
    if n <= 0:
        return []
    # sorted() is stable, so equal star counts stay in input order
    return sorted(repos, key=lambda r: r.stars, reverse=True)[:n]


def creation_timeline(repos: list[Repository]) -> list[TimelinePoint]:
    """Repositories created per calendar year, oldest year first."""
    per_year = Counter(str(repo.created_at.year) for repo in repos)
    return [TimelinePoint(period=year, count=count) for year, count in sorted(per_year.items())]


def repo_stats_summary(repos: list[Repository]) -> RepoStatsSummary:
    return RepoStatsSummary(
        total_stars=sum(r.stars for r in repos),
        total_forks=sum(r.forks for r in repos),
        total_languages=len({r.language for r in repos if r.language is not None}),
        total_repos=len(repos),
    )


def week_start(day: dt.date) -> dt.date:
    """Sunday on or before ``day``."""
    # weekday(): Monday=0 .. Sunday=6
    return day - dt.timedelta(days=(day.weekday() + 1) % 7)


def weekly_commit_summary(days: list[ContributionDay], weeks: int = WEEKS_SHOWN) -> list[WeeklyActivity]:
    """Sum daily contributions into Sunday-started weeks, keep the latest ``weeks``."""
    buckets: dict[dt.date, int] = {}
    for day in days:
        key = week_start(day.date)
        buckets[key] = buckets.get(key, 0) + day.contribution_count
    ordered = [WeeklyActivity(date=d, count=c) for d, c in sorted(buckets.items())]
    return ordered[-weeks:] if weeks > 0 else []


def build_stats(summary: RepoStatsSummary, totals: ContributionTotals) -> DashboardStats:
    return DashboardStats(
        total_repos=summary.total_repos,
        total_languages=summary.total_languages,
        total_stars=summary.total_stars,
        total_forks=summary.total_forks,
        total_commits=totals.total_commits,
        total_issues=totals.total_issues,
        total_prs=totals.total_prs,
        total_reviews=totals.total_reviews,
        total_private_contributions=totals.total_private_contributions,
    )
