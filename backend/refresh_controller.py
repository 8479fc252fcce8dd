"""Client-side poller that keeps a dashboard payload fresh.

Polls ``GET /api/github/{username}`` every ``interval`` seconds and keeps a
once-per-second countdown to the next poll. The two loops run as separate
asyncio tasks and only share ``last_refresh``.
"""

import asyncio
import logging
import time

import httpx

logger = logging.getLogger("octodash")

REFRESH_INTERVAL = 5 * 60  # seconds
COUNTDOWN_TICK = 1.0
DEFAULT_ERROR = "Failed to fetch GitHub data"


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return DEFAULT_ERROR
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return DEFAULT_ERROR


class RefreshController:
    """Holds the latest dashboard payload plus refresh bookkeeping.

    On a failed refresh the previous ``data`` stays in place, ``error`` is
    set, and the countdown is left running from the last success.
    """

    def __init__(self, base_url: str, username: str | None, interval: float = REFRESH_INTERVAL,
                 clock=time.time, transport: httpx.AsyncBaseTransport | None = None,
                 timeout: float = 30.0, on_refresh=None):
        self.base_url = base_url.rstrip("/")
        self.username = (username or "").strip()
        self.interval = interval
        self.timeout = timeout
        self.on_refresh = on_refresh
        self._clock = clock
        self._transport = transport
        self._stop: asyncio.Event | None = None

        self.data: dict | None = None
        self.error: str | None = None
        self.loading = False
        self.last_refresh = clock()
        self.time_until_next_refresh = interval

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self._transport)

    async def refresh(self) -> bool:
        """Fetch once. Returns True when new data was stored."""
        if not self.username:
            self.error = "No username provided"
            self.loading = False
            return False

        self.loading = True
        self.error = None
        try:
            async with self._client() as client:
                resp = await client.get(f"/api/github/{self.username}", headers={"Cache-Control": "no-cache"})
            if resp.is_error:
                self.error = _error_message(resp)
                logger.warning("refresh FAILED user=%s status=%d: %s", self.username, resp.status_code, self.error)
                return False
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            self.error = str(e) or DEFAULT_ERROR
            logger.warning("refresh FAILED user=%s: %s", self.username, self.error)
            return False
        finally:
            self.loading = False

        self.data = data
        self.last_refresh = self._clock()
        self.time_until_next_refresh = self.interval
        return True

    def tick(self) -> float:
        """Recompute seconds left until the next scheduled poll."""
        elapsed = self._clock() - self.last_refresh
        self.time_until_next_refresh = max(0.0, self.interval - elapsed)
        return self.time_until_next_refresh

    async def _refresh_and_notify(self):
        await self.refresh()
        if self.on_refresh is not None:
            self.on_refresh(self)

    async def _poll_loop(self):
        while True:
            await asyncio.sleep(self.interval)
            await self._refresh_and_notify()

    async def _countdown_loop(self):
        while True:
            await asyncio.sleep(COUNTDOWN_TICK)
            self.tick()

    async def run(self):
        """Fetch now, then poll and count down until stop() is called."""
        self._stop = asyncio.Event()
        await self._refresh_and_notify()
        tasks = [asyncio.create_task(self._poll_loop()), asyncio.create_task(self._countdown_loop())]
        try:
            await self._stop.wait()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    def stop(self):
        if self._stop is not None:
            self._stop.set()
