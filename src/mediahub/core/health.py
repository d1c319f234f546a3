import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from time import perf_counter

import httpx

from mediahub.models import SiteDescriptor, SiteStatusRecord, StatusSnapshot

logger = logging.getLogger(__name__)


class HealthChecker:
    """Probes every configured site with a HEAD request and reports status + latency.

    - any HTTP response within the timeout (whatever the status code) → active
    - timeout or transport error → inactive, no response time
    - a site declared ``maintenance`` keeps that status; it is still probed so
      its latency shows up, but only the config can lift the flag
    - probes run concurrently (capped by ``max_concurrency``) and every probe
      settles before results are returned, one record per site in input order
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        timeout: float = 5.0,
        max_concurrency: int = 16,
    ) -> None:
        self._client = client
        self._timeout = timeout
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def check_site(self, site: SiteDescriptor) -> SiteStatusRecord:
        async with self._semaphore:
            t0 = perf_counter()
            try:
                # httpx timeouts apply per phase; the deadline bounds the whole probe
                async with asyncio.timeout(self._timeout):
                    await self._client.head(site.endpoint, timeout=self._timeout)
            except (httpx.HTTPError, httpx.InvalidURL, TimeoutError) as e:
                if isinstance(e, TimeoutError):
                    reason = f"timed out after {self._timeout:g}s"
                else:
                    reason = str(e) or type(e).__name__
                logger.warning(
                    "Probe failed | site=%s url=%s error=%s", site.key, site.endpoint, reason
                )
                return SiteStatusRecord(
                    key=site.key,
                    status="maintenance" if site.status == "maintenance" else "inactive",
                    response_time_ms=None,
                    error=reason,
                )
            elapsed_ms = (perf_counter() - t0) * 1000

        logger.debug("Probe ok | site=%s elapsed=%.0fms", site.key, elapsed_ms)
        return SiteStatusRecord(
            key=site.key,
            status="maintenance" if site.status == "maintenance" else "active",
            response_time_ms=round(elapsed_ms, 1),
        )

    async def check_all(self, sites: Sequence[SiteDescriptor]) -> list[SiteStatusRecord]:
        if not sites:
            return []
        results = await asyncio.gather(*(self.check_site(site) for site in sites))
        active = sum(1 for r in results if r.status == "active")
        logger.info("Health check finished: %d/%d sites active", active, len(results))
        return list(results)

    async def snapshot(
        self, sites: Sequence[SiteDescriptor], *, version: int = 1
    ) -> StatusSnapshot:
        records = await self.check_all(sites)
        return StatusSnapshot(
            version=version,
            taken_at=datetime.now(UTC),
            statuses={r.key: r for r in records},
        )


def apply_snapshot(
    sites: Iterable[SiteDescriptor], snapshot: StatusSnapshot | None
) -> list[SiteDescriptor]:
    """Copies of ``sites`` with status, check time and latency taken from ``snapshot``.

    Sites the snapshot does not cover keep their declared status.
    """
    if snapshot is None:
        return list(sites)

    updated: list[SiteDescriptor] = []
    for site in sites:
        record = snapshot.get(site.key)
        if record is None:
            updated.append(site)
            continue
        updated.append(
            site.model_copy(
                update={
                    "status": record.status,
                    "last_checked_at": record.checked_at,
                    "last_response_time_ms": record.response_time_ms,
                }
            )
        )
    return updated
