import asyncio
import logging
from collections.abc import Callable, Sequence

from mediahub.core.health import HealthChecker
from mediahub.models import SiteDescriptor, StatusSnapshot

logger = logging.getLogger(__name__)


class HealthMonitor:
    """Re-runs the health check on a fixed interval and keeps the latest snapshot.

    Runs never overlap: a refresh requested while one is in flight waits for
    it and returns its snapshot instead of probing again. Each completed run
    bumps the snapshot version, so ``latest`` only ever moves forward.

    The checker may be fixed at construction or handed to each call, for
    owners whose HTTP client changes between runs.
    """

    def __init__(
        self,
        checker: HealthChecker | None,
        sites: Callable[[], Sequence[SiteDescriptor]],
        *,
        interval: float = 300.0,
        initial: StatusSnapshot | None = None,
    ) -> None:
        self._checker = checker
        self._sites = sites
        self._interval = interval
        self._lock = asyncio.Lock()
        self._latest = initial

    @property
    def latest(self) -> StatusSnapshot | None:
        return self._latest

    async def refresh(self, checker: HealthChecker | None = None) -> StatusSnapshot:
        checker = checker or self._checker
        if checker is None:
            raise ValueError("HealthMonitor.refresh needs a checker")
        seen = self._latest
        async with self._lock:
            if self._latest is not seen and self._latest is not None:
                # Another caller finished a run while we were waiting
                return self._latest
            version = (self._latest.version if self._latest else 0) + 1
            snapshot = await checker.snapshot(self._sites(), version=version)
            self._latest = snapshot
            return snapshot

    async def run_forever(
        self,
        checker: HealthChecker | None = None,
        *,
        interval: float | None = None,
        on_snapshot: Callable[[StatusSnapshot], None] | None = None,
        max_runs: int | None = None,
    ) -> None:
        interval = self._interval if interval is None else interval
        runs = 0
        while max_runs is None or runs < max_runs:
            snapshot = await self.refresh(checker)
            runs += 1
            if on_snapshot:
                on_snapshot(snapshot)
            if max_runs is not None and runs >= max_runs:
                break
            logger.debug("Next health check in %.0fs", interval)
            await asyncio.sleep(interval)
