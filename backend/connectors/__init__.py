"""Data connectors for the GitHub REST and GraphQL APIs."""

from .github_connector import DEGRADE, FAIL, FAILURE_POLICY, GitHubClient, resolve_token

__all__ = ["GitHubClient", "resolve_token", "FAILURE_POLICY", "FAIL", "DEGRADE"]
