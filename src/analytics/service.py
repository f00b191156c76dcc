"""
Analytics Service

Serves the dashboard report from the cache and reassembles it on a miss.
"""

import asyncio
from typing import Optional, Tuple

import structlog

from src.analytics.assembler import ReportAssembler
from src.analytics.schemas import Report
from src.serving.cache import ReportCache

logger = structlog.get_logger(__name__)


class AnalyticsService:
    """
    Cache-or-assemble front for the report engine.

    With ``single_flight`` enabled, a miss while an assembly is already
    running awaits that assembly instead of starting another, so concurrent
    misses cost one assembly even when the cache cannot store the result.
    A failed assembly leaves the cache as it was and is not reused.
    """

    def __init__(
        self,
        assembler: ReportAssembler,
        cache: ReportCache,
        single_flight: bool = True,
    ):
        self.assembler = assembler
        self.cache = cache
        self.single_flight = single_flight
        self._inflight: Optional[asyncio.Task] = None

    async def get_report(self) -> Tuple[Report, bool]:
        """
        Current dashboard report.

        Returns:
            (report, cached): ``cached`` is True when served from the cache

        Raises:
            AnalyticsError: Assembly failed
        """
        cached = await self.cache.get()
        if cached is not None:
            logger.debug("Report cache hit")
            return cached, True

        if not self.single_flight:
            return await self._recompute(), False

        task = self._inflight
        if task is None:
            task = asyncio.ensure_future(self._recompute_once())
            self._inflight = task
        else:
            logger.debug("Joining in-flight report assembly")

        # A cancelled caller must not cancel the assembly others are awaiting
        return await asyncio.shield(task), False

    async def _recompute_once(self) -> Report:
        try:
            return await self._recompute()
        finally:
            self._inflight = None

    async def _recompute(self) -> Report:
        logger.info("Report cache miss, assembling report")
        report = await self.assembler.assemble()
        await self.cache.put(report)
        return report
