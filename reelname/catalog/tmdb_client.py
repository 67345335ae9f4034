"""TMDB client adapter: search, episode lookup and season listing."""

from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, List, Optional

import aiohttp

from reelname import logger
from reelname.__version__ import __version__
from reelname.catalog import payloads
from reelname.catalog.protocols import CatalogClient
from reelname.catalog.types import CatalogResult, SeasonSummary
from reelname.config import TMDB_API_KEY_ENV, CatalogConfig
from reelname.errors import CatalogUnavailableError, MissingCredentialError
from reelname.rate_limits import SlidingWindowLimiter

DEFAULT_USER_AGENT = f"ReelName/{__version__}"
SERVICE_NAME = "TMDB"

_SEARCH_PATHS = {
    "movie": "/search/movie",
    "tv": "/search/tv",
}
_MULTI_SEARCH_PATH = "/search/multi"


class TmdbClient(CatalogClient):
    """Rate-limited TMDB adapter. No retries and no caching."""

    def __init__(
        self,
        config: CatalogConfig,
        limiter: Optional[SlidingWindowLimiter] = None,
    ):
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.timeout = config.timeout
        self._limiter = limiter or SlidingWindowLimiter(
            quota=config.rate_limit_quota,
            window_seconds=config.rate_limit_window,
        )
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()

    def ensure_credential(self) -> None:
        if not self.config.api_key:
            raise MissingCredentialError(
                f"TMDB API key is not configured. Set catalog.api_key or {TMDB_API_KEY_ENV}."
            )

    async def search(
        self,
        query: str,
        media_type_hint: Optional[str] = None,
        year: Optional[int] = None,
    ) -> List[CatalogResult]:
        """Search by title; movie and tv hints use their own endpoints, anything else goes multi."""
        self.ensure_credential()
        params: Dict[str, Any] = {"query": query, "include_adult": "false"}
        path = _SEARCH_PATHS.get(media_type_hint or "", _MULTI_SEARCH_PATH)
        forced_type = media_type_hint if path != _MULTI_SEARCH_PATH else None
        if year is not None:
            params["first_air_date_year" if forced_type == "tv" else "year"] = str(year)

        payload = await self._request(path, params)
        try:
            return payloads.search_results(payload, f"TMDB {path}", forced_type)
        except ValueError as exc:
            raise CatalogUnavailableError(str(exc)) from exc

    async def fetch_episode_title(self, show_id: int, season: int, episode: int) -> Optional[str]:
        """Episode name, or None when TMDB has no such episode."""
        self.ensure_credential()
        path = f"/tv/{show_id}/season/{season}/episode/{episode}"
        payload = await self._request(path, {}, allow_not_found=True)
        if payload is None:
            return None
        try:
            return payloads.episode_name(payload, f"TMDB {path}")
        except ValueError as exc:
            raise CatalogUnavailableError(str(exc)) from exc

    async def list_seasons(self, show_id: int) -> List[SeasonSummary]:
        self.ensure_credential()
        path = f"/tv/{show_id}"
        payload = await self._request(path, {})
        try:
            return payloads.season_summaries(payload, f"TMDB {path}")
        except ValueError as exc:
            raise CatalogUnavailableError(str(exc)) from exc

    async def _request(
        self,
        path: str,
        params: Dict[str, Any],
        allow_not_found: bool = False,
    ) -> Optional[Any]:
        url = f"{self.base_url}{path}"
        query = {"api_key": self.config.api_key, "language": self.config.language, **params}
        logger.get_logger().api_request("GET", url, query)

        await self._enforce_rate_limit()
        session = await self._ensure_session()
        request_start = time.time()
        try:
            async with session.get(url, params=query) as response:
                if response.status == 404 and allow_not_found:
                    logger.get_logger().api_response(response.status, {}, (time.time() - request_start) * 1000)
                    return None
                if response.status >= 400:
                    raise CatalogUnavailableError(
                        f"TMDB request {path} failed with HTTP {response.status}",
                        status=response.status,
                    )
                try:
                    data = await response.json()
                except ValueError as exc:
                    raise CatalogUnavailableError(f"TMDB request {path} returned an unreadable body: {exc}") from exc
                elapsed_ms = (time.time() - request_start) * 1000
        except (asyncio.TimeoutError, aiohttp.ClientError) as exc:
            raise CatalogUnavailableError(f"TMDB request {path} failed: {str(exc) or type(exc).__name__}") from exc

        logger.get_logger().api_response(response.status, data if isinstance(data, dict) else {}, elapsed_ms)
        return data

    async def _enforce_rate_limit(self) -> None:
        wait = await self._limiter.acquire()
        log = logger.get_logger()
        log.api_wait_debug(SERVICE_NAME, wait)
        if wait > 0:
            log.api_wait(SERVICE_NAME, wait)

    async def _ensure_session(self) -> aiohttp.ClientSession:
        session = self._session
        if session is not None and not session.closed:
            return session

        async with self._session_lock:
            session = self._session
            if session is None or session.closed:
                timeout = aiohttp.ClientTimeout(total=self.timeout)
                self._session = aiohttp.ClientSession(
                    headers={"Accept": "application/json", "User-Agent": DEFAULT_USER_AGENT},
                    timeout=timeout,
                )
            return self._session

    async def close(self) -> None:
        """Close any open connections."""
        async with self._session_lock:
            session = self._session
            self._session = None
        if session is not None and not session.closed:
            await session.close()
