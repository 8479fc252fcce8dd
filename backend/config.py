"""Runtime settings read from the process environment."""

import os

from pydantic import BaseModel

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_GRAPHQL_URL = "https://api.github.com/graphql"


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    github_token: str = ""
    require_token: bool = True
    session_secret: str = ""
    cache_ttl: int = 300
    top_repos_limit: int = 5
    api_url: str = DEFAULT_API_URL
    graphql_url: str = DEFAULT_GRAPHQL_URL
    http_timeout: float = 15.0
    dev: bool = False


def load_settings() -> Settings:
    """Build Settings from environment variables."""
    return Settings(
        github_token=os.environ.get("GITHUB_TOKEN", "").strip(),
        require_token=_flag("REQUIRE_GITHUB_TOKEN", "1"),
        session_secret=os.environ.get("SESSION_SECRET", ""),
        cache_ttl=int(os.environ.get("CACHE_TTL", "300")),
        top_repos_limit=int(os.environ.get("TOP_REPOS_LIMIT", "5")),
        api_url=os.environ.get("GITHUB_API_URL", DEFAULT_API_URL).rstrip("/"),
        graphql_url=os.environ.get("GITHUB_GRAPHQL_URL", DEFAULT_GRAPHQL_URL),
        http_timeout=float(os.environ.get("HTTP_TIMEOUT", "15")),
        dev=os.environ.get("ENV") == "dev",
    )
