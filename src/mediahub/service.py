from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Self

import httpx

from mediahub.config import ConfigSource, Settings
from mediahub.core.health import HealthChecker, apply_snapshot
from mediahub.core.monitor import HealthMonitor
from mediahub.core.search import SearchPipeline
from mediahub.models import (
    AppConfig,
    MediaRecord,
    MediaTypeFilter,
    SearchQuery,
    SearchReport,
    SiteDescriptor,
    StatusSnapshot,
)


class ResourceService:
    """Entry point for callers: site health checks and aggregated search.

    Loads the config on construction so a missing or broken config fails
    at startup. The last health-check snapshot is kept and used to pick
    sites for later searches; until the first check, declared statuses apply.
    """

    def __init__(
        self,
        source: ConfigSource,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or Settings()
        self._transport = transport
        self._config: AppConfig = source.get_config()
        # One monitor for manual checks and the periodic loop alike, so every
        # run is serialized and numbered by the same counter
        self._monitor = HealthMonitor(
            None, self._config.sites, interval=self._settings.check_interval
        )
        self._http: httpx.AsyncClient | None = None

    async def __aenter__(self) -> Self:
        self._http = self._new_client()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._http:
            await self._http.aclose()
            self._http = None

    @property
    def config(self) -> AppConfig:
        return self._config

    @property
    def latest_snapshot(self) -> StatusSnapshot | None:
        return self._monitor.latest

    def sites(self) -> list[SiteDescriptor]:
        """Configured sites with the latest known status applied."""
        return apply_snapshot(self._config.sites(), self._monitor.latest)

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={"User-Agent": self._settings.user_agent},
            follow_redirects=True,
            transport=self._transport,
        )

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        """The shared client inside ``async with service``, else a one-off client."""
        if self._http:
            yield self._http
            return
        async with self._new_client() as client:
            yield client

    def _checker(self, client: httpx.AsyncClient) -> HealthChecker:
        return HealthChecker(
            client,
            timeout=self._settings.probe_timeout,
            max_concurrency=self._settings.max_concurrency,
        )

    def _pipeline(self, client: httpx.AsyncClient) -> SearchPipeline:
        return SearchPipeline(
            client,
            filters=self._config.resource_filters,
            timeout=self._settings.search_timeout,
            max_concurrency=self._settings.max_concurrency,
        )

    async def refresh_status(self) -> StatusSnapshot:
        """Run one health check; waits for (and reuses) a run already in flight."""
        async with self._client_scope() as client:
            return await self._monitor.refresh(self._checker(client))

    async def check_all_resource_sites(self) -> list[SiteDescriptor]:
        """Probe every site; return the descriptors with fresh status and latency."""
        snapshot = await self.refresh_status()
        return apply_snapshot(self._config.sites(), snapshot)

    async def search_report(
        self,
        keyword: str,
        type: MediaTypeFilter = "all",
        page: int = 1,
        limit: int = 20,
    ) -> SearchReport:
        query = SearchQuery(keyword=keyword, media_type=type, page=page, limit=limit)
        async with self._client_scope() as client:
            return await self._pipeline(client).run(
                query, self._config.sites(), self._monitor.latest
            )

    async def search_resources(
        self,
        keyword: str,
        type: MediaTypeFilter = "all",
        page: int = 1,
        limit: int = 20,
    ) -> list[MediaRecord]:
        report = await self.search_report(keyword, type, page, limit)
        return report.records

    async def run_monitor(
        self,
        *,
        interval: float | None = None,
        on_snapshot: Callable[[StatusSnapshot], None] | None = None,
        max_runs: int | None = None,
    ) -> None:
        """Health-check on a fixed interval; later searches use each new snapshot."""
        async with self._client_scope() as client:
            await self._monitor.run_forever(
                self._checker(client),
                interval=interval,
                on_snapshot=on_snapshot,
                max_runs=max_runs,
            )
