"""
Unit Tests - Analytics Service
"""
import asyncio

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.analytics.exceptions import ReportAssemblyError, StoreUnavailable
from src.analytics.service import AnalyticsService
from src.serving.cache import InMemoryReportCache, RedisReportCache


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class DownRedis:
    """Redis client whose every command fails"""

    async def get(self, key):
        raise RedisConnectionError("redis down")

    async def setex(self, key, seconds, value):
        raise RedisConnectionError("redis down")


class StubAssembler:
    """Counts assemblies; optionally slow or failing"""

    def __init__(self, report, delay: float = 0.0, error: Exception = None):
        self.report = report
        self.delay = delay
        self.error = error
        self.calls = 0

    async def assemble(self):
        self.calls += 1
        await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.report


class TestAnalyticsService:
    """Tests for AnalyticsService.get_report"""

    async def test_miss_assembles_and_caches(self, sample_report):
        """Test that a miss assembles once and the next call is a hit"""
        assembler = StubAssembler(sample_report)
        service = AnalyticsService(assembler, InMemoryReportCache(ttl=600, clock=FakeClock()))

        first, first_cached = await service.get_report()
        second, second_cached = await service.get_report()

        assert first is sample_report and first_cached is False
        assert second is sample_report and second_cached is True
        assert assembler.calls == 1

    async def test_recomputes_after_expiry(self, sample_report):
        """Test that an expired entry triggers a new assembly"""
        clock = FakeClock()
        assembler = StubAssembler(sample_report)
        service = AnalyticsService(assembler, InMemoryReportCache(ttl=600, clock=clock))

        await service.get_report()
        clock.now += 600
        _, cached = await service.get_report()

        assert cached is False
        assert assembler.calls == 2

    async def test_failed_assembly_leaves_cache_untouched(self, sample_report):
        """Test that a failed assembly does not replace the stored entry"""
        clock = FakeClock()
        cache = InMemoryReportCache(ttl=600, clock=clock)
        await cache.put(sample_report)
        stale_entry = cache._entry
        clock.now += 601

        failure = ReportAssemblyError({"revenue": StoreUnavailable("down")})
        service = AnalyticsService(StubAssembler(sample_report, error=failure), cache)

        with pytest.raises(ReportAssemblyError):
            await service.get_report()

        assert cache._entry is stale_entry
        assert await cache.get() is None


class TestSingleFlight:
    """Concurrent misses share one assembly"""

    async def test_concurrent_misses_share_one_assembly(self, sample_report):
        """Test that N concurrent misses run a single assembly"""
        assembler = StubAssembler(sample_report, delay=0.05)
        service = AnalyticsService(
            assembler,
            InMemoryReportCache(ttl=600, clock=FakeClock()),
            single_flight=True,
        )

        results = await asyncio.gather(*(service.get_report() for _ in range(5)))

        assert assembler.calls == 1
        assert all(report is sample_report for report, _ in results)
        assert [cached for _, cached in results] == [False] * 5

    async def test_shared_assembly_when_cache_is_down(self, sample_report):
        """Test that misses are deduplicated even when the cache cannot store"""
        assembler = StubAssembler(sample_report, delay=0.2)
        service = AnalyticsService(assembler, RedisReportCache(DownRedis(), ttl=600))
        loop = asyncio.get_running_loop()

        start = loop.time()
        results = await asyncio.gather(*(service.get_report() for _ in range(5)))
        elapsed = loop.time() - start

        assert assembler.calls == 1
        assert all(report is sample_report for report, _ in results)
        # One assembly's worth of latency, not five in a row
        assert elapsed < 0.6

    async def test_next_miss_after_completion_assembles_again(self, sample_report):
        """Test that a finished assembly is not reused for later misses"""
        assembler = StubAssembler(sample_report)
        service = AnalyticsService(assembler, RedisReportCache(DownRedis(), ttl=600))

        await service.get_report()
        await service.get_report()

        assert assembler.calls == 2

    async def test_without_single_flight_each_miss_recomputes(self, sample_report):
        """Test that disabling single flight assembles once per miss"""
        assembler = StubAssembler(sample_report, delay=0.05)
        service = AnalyticsService(
            assembler,
            InMemoryReportCache(ttl=600, clock=FakeClock()),
            single_flight=False,
        )

        results = await asyncio.gather(*(service.get_report() for _ in range(5)))

        assert assembler.calls == 5
        assert all(report is sample_report for report, _ in results)

    async def test_failure_reaches_every_waiter_then_retries(self, sample_report):
        """Test that a shared failure is raised to all callers and not cached"""
        assembler = StubAssembler(sample_report, delay=0.05, error=StoreUnavailable("down"))
        service = AnalyticsService(assembler, InMemoryReportCache(ttl=600, clock=FakeClock()))

        results = await asyncio.gather(
            *(service.get_report() for _ in range(3)),
            return_exceptions=True,
        )

        assert assembler.calls == 1
        assert all(isinstance(result, StoreUnavailable) for result in results)

        assembler.error = None
        report, cached = await service.get_report()

        assert report is sample_report
        assert cached is False
        assert assembler.calls == 2

    async def test_cancelled_caller_does_not_cancel_assembly(self, sample_report):
        """Test that other waiters still get the report when one caller is cancelled"""
        assembler = StubAssembler(sample_report, delay=0.05)
        service = AnalyticsService(assembler, InMemoryReportCache(ttl=600, clock=FakeClock()))

        first = asyncio.ensure_future(service.get_report())
        second = asyncio.ensure_future(service.get_report())
        await asyncio.sleep(0.01)
        first.cancel()

        report, _ = await second

        assert report is sample_report
        assert assembler.calls == 1
        with pytest.raises(asyncio.CancelledError):
            await first
