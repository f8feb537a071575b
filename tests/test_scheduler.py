import asyncio
import time

from loguru import logger

from monitoring.scheduler import Scheduler
from tests.fakes import FakeNotifier, FakeStore


def test_builtin_jobs_follow_monitoring_settings(make_engine, monitoring_settings):
    engine = make_engine(FakeStore(), FakeNotifier())
    scheduler = Scheduler(None, engine, settings=monitoring_settings)

    cycle = scheduler.get_job("monitor_cycle")
    heartbeat = scheduler.get_job("heartbeat")

    assert cycle.interval_seconds == monitoring_settings.frequency_min * 60
    assert cycle.coroutine_factory == engine.run_cycle
    assert heartbeat.interval_seconds == monitoring_settings.heartbeat_interval


def test_busy_job_is_skipped_instead_of_overlapping(monitoring_settings):
    async def scenario():
        release = asyncio.Event()
        runs = []

        async def slow_cycle():
            runs.append(time.time())
            await release.wait()

        scheduler = Scheduler(None, None, settings=monitoring_settings)
        scheduler.register_job("monitor_cycle", 0, slow_cycle)
        job = scheduler.get_job("monitor_cycle")

        first = scheduler._run_pending(time.time())
        await asyncio.sleep(0)
        second = scheduler._run_pending(time.time())

        assert len(first) == 1
        assert second == []
        assert job.running is True
        assert job.skipped_count == 1

        release.set()
        await asyncio.gather(*first)

        assert job.running is False
        assert job.run_count == 1

        third = scheduler._run_pending(time.time())
        await asyncio.gather(*third)
        return runs, job

    runs, job = asyncio.run(scenario())

    assert len(runs) == 2
    assert job.run_count == 2


def test_failing_job_is_counted_not_raised(monitoring_settings):
    async def scenario():
        async def broken():
            raise RuntimeError("boom")

        scheduler = Scheduler(None, None, settings=monitoring_settings)
        scheduler.register_job("broken", 60, broken)

        await asyncio.gather(*scheduler._run_pending(time.time()))
        return scheduler.get_job("broken")

    job = asyncio.run(scenario())

    assert job.error_count == 1
    assert job.running is False


def test_start_runs_the_cycle_and_stop_waits(make_engine, monitoring_settings):
    async def scenario():
        store = FakeStore()
        engine = make_engine(store, FakeNotifier())
        scheduler = Scheduler(None, engine, settings=monitoring_settings, tick_interval=0.01)

        await scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()
        return store, engine, scheduler

    store, engine, scheduler = asyncio.run(scenario())

    # first tick runs immediately, the next one is a minute away
    assert len(store.queried_times) == 1
    assert engine.last_report is not None
    assert scheduler.is_running is False


def test_job_stats_report_counters(monitoring_settings):
    async def scenario():
        async def quick():
            return None

        scheduler = Scheduler(None, None, settings=monitoring_settings)
        scheduler.register_job("quick", 60, quick)
        await asyncio.gather(*scheduler._run_pending(time.time()))
        return scheduler.get_job_stats()

    [stats] = asyncio.run(scenario())

    assert stats["name"] == "quick"
    assert stats["run_count"] == 1
    assert stats["error_count"] == 0
    assert stats["skipped_count"] == 0
    assert stats["running"] is False
    assert stats["last_run"] is not None


def test_heartbeat_logs_job_counters(make_engine, monitoring_settings):
    messages = []
    sink_id = logger.add(lambda message: messages.append(message.record["message"]), level="INFO")
    try:
        engine = make_engine(FakeStore(), FakeNotifier())
        scheduler = Scheduler(None, engine, settings=monitoring_settings)
        scheduler.get_job("monitor_cycle").skipped_count = 3

        asyncio.run(scheduler._job_heartbeat())
    finally:
        logger.remove(sink_id)

    [line] = [m for m in messages if m.startswith("[Heartbeat]")]
    assert "db=n/a" in line
    assert "last cycle: none yet" in line
    assert "monitor_cycle(runs=0, errors=0, skipped=3)" in line
    assert "heartbeat(runs=0" in line


def test_disabled_job_is_never_launched(monitoring_settings):
    async def scenario():
        async def never():
            raise AssertionError("disabled job ran")

        scheduler = Scheduler(None, None, settings=monitoring_settings)
        scheduler.register_job("paused", 0, never, enabled=False)
        return scheduler._run_pending(time.time())

    assert asyncio.run(scenario()) == []
