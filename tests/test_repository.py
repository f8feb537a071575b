import asyncio

import pytest

from config.settings import DatabaseSettings
from database.manager import DatabaseManager, DeviceRepository
from database.models import MonitorTrigger, Protocol
from exceptions import DatabaseQueryError, InvalidWindowError
from tests.fakes import build_device

MEMORY_URL = "sqlite+aiosqlite:///:memory:"


def run_with_repository(scenario):
    async def _run():
        db = DatabaseManager(DatabaseSettings(), url=MEMORY_URL)
        await db.initialize()
        try:
            return await scenario(DeviceRepository(db))
        finally:
            await db.close()

    return asyncio.run(_run())


def new_device(**overrides):
    device = build_device(**overrides)
    device.id = None
    return device


def test_window_bounds_are_inclusive():
    async def scenario(repo):
        await repo.create_devices([
            new_device(name="morning", monitor_start_utc=800, monitor_end_utc=1200),
            new_device(name="afternoon", monitor_start_utc=1300, monitor_end_utc=1700),
            new_device(name="all-day", monitor_start_utc=0, monitor_end_utc=2400),
        ])
        return {
            t: sorted(d.name for d in await repo.get_active_devices(t))
            for t in (759, 800, 1200, 1201, 1300, 1700, 2400)
        }

    active = run_with_repository(scenario)

    assert active[759] == ["all-day"]
    assert active[800] == ["all-day", "morning"]
    assert active[1200] == ["all-day", "morning"]
    assert active[1201] == ["all-day"]
    assert active[1300] == ["afternoon", "all-day"]
    assert active[1700] == ["afternoon", "all-day"]
    assert active[2400] == ["all-day"]


def test_time_outside_day_is_rejected():
    async def scenario(repo):
        with pytest.raises(InvalidWindowError):
            await repo.get_active_devices(2401)
        with pytest.raises(InvalidWindowError):
            await repo.get_active_devices(-1)

    run_with_repository(scenario)


def test_create_assigns_ids_and_keeps_fields():
    async def scenario(repo):
        created = await repo.create_devices([
            new_device(name="db", identifier="db.example.com", protocol=Protocol.TCP, port=5432,
                       persist=True, monitor_trigger=MonitorTrigger.ONLINE),
        ])
        return created, await repo.get_devices()

    created, stored = run_with_repository(scenario)

    assert created[0].id is not None
    assert len(stored) == 1
    device = stored[0]
    assert device.id == created[0].id
    assert device.protocol is Protocol.TCP
    assert device.port == 5432
    assert device.persist is True
    assert device.monitor_trigger is MonitorTrigger.ONLINE
    assert device.been_notified is False


def test_delete_and_update_batches():
    async def scenario(repo):
        a, b, c = await repo.create_devices([new_device(name=n) for n in ("a", "b", "c")])

        deleted = await repo.delete_devices([a.id])
        updated = await repo.update_devices([
            {"id": b.id, "been_notified": True},
            {"id": c.id, "been_notified": True, "comments": "checked"},
        ])
        remaining = await repo.get_devices()
        only_c = await repo.get_devices([c.id])
        return deleted, updated, remaining, only_c

    deleted, updated, remaining, only_c = run_with_repository(scenario)

    assert deleted == 1
    assert updated == 2
    assert [d.name for d in remaining] == ["b", "c"]
    assert all(d.been_notified for d in remaining)
    assert only_c[0].comments == "checked"


def test_empty_batches_do_not_touch_the_database():
    async def scenario(repo):
        return await repo.delete_devices([]), await repo.update_devices([])

    assert run_with_repository(scenario) == (0, 0)


def test_failed_write_reports_operation_and_statement():
    async def scenario(repo):
        with pytest.raises(DatabaseQueryError) as excinfo:
            await repo.create_devices([new_device(monitor_start_utc=3000)])
        return excinfo.value

    error = run_with_repository(scenario)

    assert error.details["operation"] == "insert"
    assert "INSERT INTO monitor_devices" in error.details["query"]
