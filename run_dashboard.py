#!/usr/bin/env python3
"""
OctoDash launcher

Serve the API:

    python run_dashboard.py serve --port 8000

Watch a user from the terminal (polls a running server every 5 minutes):

    python run_dashboard.py watch octocat --url http://localhost:8000

Prerequisites:
    pip install -e .
"""

import argparse
import asyncio
import os
import sys


def _add_backend_to_path():
    backend_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "backend")
    if backend_dir not in sys.path:
        sys.path.insert(0, backend_dir)


def summarize(controller) -> str:
    """One status line for the terminal watcher."""
    if controller.data is None:
        return f"[{controller.username}] no data yet: {controller.error or 'waiting'}"
    stats = controller.data.get("stats", {})
    line = (
        f"[{controller.username}] repos={stats.get('total_repos', 0)} "
        f"stars={stats.get('total_stars', 0)} forks={stats.get('total_forks', 0)} "
        f"commits={stats.get('total_commits', 0)} prs={stats.get('total_prs', 0)} "
        f"updated={controller.data.get('last_updated', '?')}"
    )
    if controller.error:
        line += f" (stale: {controller.error})"
    return line


def serve(args):
    if args.dev:
        os.environ.setdefault("ENV", "dev")
    if not os.environ.get("GITHUB_TOKEN"):
        print("\nNote: GITHUB_TOKEN not set. Set REQUIRE_GITHUB_TOKEN=0 to allow visitor tokens")
        print("or anonymous access; otherwise every dashboard request returns 500.\n")

    print(f"Starting OctoDash on http://{args.host}:{args.port}")
    print(f"Try http://localhost:{args.port}/api/github/octocat\n")

    import uvicorn
    uvicorn.run("main:app", host=args.host, port=args.port, reload=False)


def watch(args):
    from refresh_controller import RefreshController

    controller = RefreshController(
        args.url, args.username, interval=args.interval,
        on_refresh=lambda c: print(summarize(c), flush=True),
    )
    try:
        asyncio.run(controller.run())
    except KeyboardInterrupt:
        print("\nStopped.")


def sign_cookie(args):
    from session import COOKIE_NAME, sign_session

    secret = os.environ.get("SESSION_SECRET", "")
    if not secret:
        sys.exit("Error: SESSION_SECRET must be set to sign a session cookie")
    value = sign_session(secret, args.token, login=args.login or "", max_age=args.max_age)
    print(f"{COOKIE_NAME}={value}")


def main():
    parser = argparse.ArgumentParser(
        description="Run the OctoDash API or watch a GitHub user",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_dashboard.py serve --port 8000 --dev
  python run_dashboard.py watch octocat --interval 60
        """,
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_serve = sub.add_parser("serve", help="Start the API server")
    p_serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0)")
    p_serve.add_argument("--port", type=int, default=8000, help="Port (default: 8000)")
    p_serve.add_argument("--dev", action="store_true", help="Enable /docs and /redoc")
    p_serve.set_defaults(func=serve)

    p_watch = sub.add_parser("watch", help="Poll a running server and print a summary")
    p_watch.add_argument("username", help="GitHub username")
    p_watch.add_argument("--url", default="http://localhost:8000", help="Server base URL")
    p_watch.add_argument("--interval", type=float, default=300, help="Seconds between refreshes (default: 300)")
    p_watch.set_defaults(func=watch)

    p_cookie = sub.add_parser("sign-cookie", help="Print a session cookie carrying a GitHub token (local testing)")
    p_cookie.add_argument("token", help="GitHub access token")
    p_cookie.add_argument("--login", help="GitHub login stored alongside the token")
    p_cookie.add_argument("--max-age", type=int, default=86400, help="Lifetime in seconds (default: 86400)")
    p_cookie.set_defaults(func=sign_cookie)

    args = parser.parse_args()
    _add_backend_to_path()
    args.func(args)


if __name__ == "__main__":
    main()
