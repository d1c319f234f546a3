import asyncio
import logging
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from time import perf_counter
from typing import Any

import httpx

from mediahub.adapters import SiteAdapter, get_adapter
from mediahub.core.health import apply_snapshot
from mediahub.models import (
    MediaRecord,
    ResourceFilters,
    SearchQuery,
    SearchReport,
    SiteDescriptor,
    SiteOutcome,
    StatusSnapshot,
)

logger = logging.getLogger(__name__)


def select_sites(
    sites: Iterable[SiteDescriptor], snapshot: StatusSnapshot | None = None
) -> list[SiteDescriptor]:
    """Active sites ordered by priority (config order on ties).

    Status comes from ``snapshot`` when given, otherwise from the declared
    status. Inactive and maintenance sites are never queried.
    """
    current = apply_snapshot(sites, snapshot)
    eligible = [site for site in current if site.status == "active"]
    return sorted(eligible, key=lambda site: site.priority)


def normalize_items(
    adapter: SiteAdapter, items: Iterable[dict[str, Any]], site: SiteDescriptor
) -> list[MediaRecord]:
    records: list[MediaRecord] = []
    for raw in items:
        try:
            records.append(adapter.normalize(raw, site))
        except ValueError as e:
            logger.debug("Skipping malformed item | site=%s error=%s", site.key, e)
    return records


def filter_quality(records: Iterable[MediaRecord], filters: ResourceFilters) -> list[MediaRecord]:
    """Drop records with a known, non-accepted quality when the filter is on.

    Records without a quality tag are always kept.
    """
    if not filters.exclude_low_quality:
        return list(records)
    accepted = filters.accepted_qualities
    return [r for r in records if r.quality is None or r.quality in accepted]


def dedupe(records: Iterable[MediaRecord]) -> list[MediaRecord]:
    """One record per (title, year); the last one in merge order wins.

    The survivor takes the slot where its key was first seen. Because merge
    order follows site dispatch order, which copy survives depends on the
    configured priorities.
    """
    unique: dict[tuple[str, str | None], MediaRecord] = {}
    for record in records:
        unique[(record.title, record.year)] = record
    return list(unique.values())


def parse_update_time(value: str | None) -> float:
    """Epoch seconds for an update-time string; 0.0 when absent or unparsable."""
    if not value:
        return 0.0
    text = value.strip()
    if text.isdigit():
        ts = float(text)
        return ts / 1000 if ts > 1e12 else ts
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return 0.0
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.timestamp()


def _rank_key(record: MediaRecord) -> tuple[bool, float, float]:
    return (
        record.score is not None,
        record.score if record.score is not None else 0.0,
        parse_update_time(record.update_time),
    )


def rank(records: Iterable[MediaRecord]) -> list[MediaRecord]:
    """Scored records first (score desc), then update time desc.

    Full ties keep their merge order.
    """
    return sorted(records, key=_rank_key, reverse=True)


class SearchPipeline:
    """Fans one query out to every active site and merges the answers.

    select → fetch (concurrent, all settle) → normalize → merge → filter →
    dedupe → rank. A failing site contributes nothing and never affects the
    others; the only errors that escape are invalid queries.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        filters: ResourceFilters | None = None,
        timeout: float = 10.0,
        max_concurrency: int = 16,
    ) -> None:
        self._client = client
        self._filters = filters or ResourceFilters()
        self._timeout = timeout
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def fetch_site(
        self, site: SiteDescriptor, query: SearchQuery
    ) -> tuple[list[MediaRecord], SiteOutcome]:
        adapter = get_adapter(site.adapter)()
        params = adapter.build_params(query)

        async with self._semaphore:
            t0 = perf_counter()
            try:
                # Deadline for the whole request, body included; a slowly
                # trickled body never trips httpx's per-read timeout
                async with asyncio.timeout(self._timeout):
                    response = await self._client.get(
                        site.endpoint, params=params, timeout=self._timeout
                    )
                response.raise_for_status()
                body = response.json()
            except (httpx.HTTPError, httpx.InvalidURL, ValueError, TimeoutError) as e:
                if isinstance(e, TimeoutError):
                    reason = f"timed out after {self._timeout:g}s"
                else:
                    reason = str(e) or type(e).__name__
                logger.warning(
                    "Search failed | site=%s name=%s error=%s", site.key, site.display_name, reason
                )
                return [], SiteOutcome(
                    key=site.key,
                    ok=False,
                    error=reason,
                    duration_seconds=perf_counter() - t0,
                )
            elapsed = perf_counter() - t0

        records = normalize_items(adapter, adapter.extract_items(body), site)
        logger.debug("Site %s returned %d records in %.2fs", site.key, len(records), elapsed)
        return records, SiteOutcome(
            key=site.key, ok=True, count=len(records), duration_seconds=elapsed
        )

    async def run(
        self,
        query: SearchQuery,
        sites: Sequence[SiteDescriptor],
        snapshot: StatusSnapshot | None = None,
    ) -> SearchReport:
        selected = select_sites(sites, snapshot)
        if not selected:
            logger.info("No active sites for query %r", query.keyword)
            return SearchReport(query=query)

        logger.info(
            "Searching %r on %d sites: %s",
            query.keyword,
            len(selected),
            ", ".join(site.key for site in selected),
        )
        results = await asyncio.gather(*(self.fetch_site(site, query) for site in selected))

        # Dispatch order, then per-site response order
        merged = [record for records, _ in results for record in records]
        records = rank(dedupe(filter_quality(merged, self._filters)))
        return SearchReport(
            query=query,
            records=records,
            outcomes=[outcome for _, outcome in results],
        )

    async def search(
        self,
        query: SearchQuery,
        sites: Sequence[SiteDescriptor],
        snapshot: StatusSnapshot | None = None,
    ) -> list[MediaRecord]:
        report = await self.run(query, sites, snapshot)
        return report.records
