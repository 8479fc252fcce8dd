import logging
from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cache import TTLCache
from config import Settings, load_settings
from connectors import GitHubClient
from dashboard import build_dashboard, classify_error
from errors import DashboardError, ValidationError
from session import COOKIE_NAME, read_session_token

logger = logging.getLogger("octodash")
logger.setLevel(logging.INFO)

# Edge caches may serve a response for 5 minutes and refresh it in the background
SUCCESS_CACHE_CONTROL = "s-maxage=300, stale-while-revalidate"

router = APIRouter()


def _error_response(exc: Exception) -> JSONResponse:
    status, message = classify_error(exc)
    return JSONResponse({"error": message}, status_code=status)


def _user_token(request: Request, settings: Settings) -> str | None:
    """Bearer token from the request, else the signed session cookie."""
    auth = request.headers.get("authorization", "")
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return read_session_token(request.cookies.get(COOKIE_NAME), settings.session_secret)


def _wants_fresh(request: Request) -> bool:
    directives = request.headers.get("cache-control", "").lower()
    return "no-cache" in directives or "no-store" in directives


@router.get("/health")
def health(request: Request):
    settings: Settings = request.app.state.settings
    return {
        "status": "ok",
        "token_configured": bool(settings.github_token),
        "cache_entries": len(request.app.state.cache),
    }


@router.get("/api/github/")
async def github_dashboard_without_user():
    return _error_response(ValidationError("Username is required"))


@router.get("/api/github/{username}")
async def github_dashboard(username: str, request: Request):
    """Full GitHub analytics for ``username`` as one JSON payload."""
    settings: Settings = request.app.state.settings
    client: GitHubClient = request.app.state.github

    try:
        payload = await build_dashboard(
            username, client, settings,
            user_token=_user_token(request, settings),
            fresh=_wants_fresh(request),
        )
    except DashboardError as e:
        response = _error_response(e)
        logger.warning("dashboard ERROR user=%s status=%d: %s", username.strip(), response.status_code, e)
        return response
    except Exception:
        logger.exception("dashboard PIPELINE_ERROR user=%s", username.strip())
        return JSONResponse({"error": "Unexpected server error"}, status_code=500)

    return JSONResponse(
        payload.model_dump(mode="json"),
        headers={"Cache-Control": SUCCESS_CACHE_CONTROL},
    )


def create_app(settings: Settings | None = None, cache: TTLCache | None = None, transport=None) -> FastAPI:
    """Build the API. Tests pass their own settings, cache and httpx transport."""
    settings = settings or load_settings()
    cache = cache if cache is not None else TTLCache(ttl=settings.cache_ttl)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Attach to uvicorn's handler (available now that uvicorn is running)
        uvicorn_logger = logging.getLogger("uvicorn")
        for h in uvicorn_logger.handlers:
            if h not in logger.handlers:
                logger.addHandler(h)
        if not settings.github_token and settings.require_token:
            logger.warning("GITHUB_TOKEN not set; dashboard requests will return 500")
        elif not settings.github_token:
            logger.warning("GITHUB_TOKEN not set; using visitor tokens or anonymous access")
        logger.info("OctoDash ready: cache ttl=%ss, top repos=%d", settings.cache_ttl, settings.top_repos_limit)
        yield
        cache.clear()

    app = FastAPI(
        title="OctoDash API", version="0.1.0",
        docs_url="/docs" if settings.dev else None,
        redoc_url="/redoc" if settings.dev else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.cache = cache
    app.state.github = GitHubClient.from_settings(settings, cache, transport=transport)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["Authorization", "Cache-Control", "Content-Type"],
    )

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    app.include_router(router)
    return app


app = create_app()
