from __future__ import annotations

import asyncio
import itertools
from typing import Any, Dict, Iterable, List, Optional

from database.models import MonitorDevice, MonitorTrigger, Protocol
from exceptions import (
    ConfigurationError,
    DatabaseQueryError,
    DispatchError,
    ProbeError,
    ResolutionError,
)

_ids = itertools.count(1)


def build_device(**overrides: Any) -> MonitorDevice:
    fields: Dict[str, Any] = dict(
        id=next(_ids),
        name="router",
        identifier="10.0.0.1",
        port=None,
        protocol=Protocol.ICMP,
        persist=False,
        monitor_trigger=MonitorTrigger.OFFLINE,
        monitor_start_utc=0,
        monitor_end_utc=2400,
        been_notified=False,
        requested_by="ops",
        notify="ops@example.com",
        email_subject="Router down",
        email_body="The router stopped answering.",
        comments=None,
    )
    fields.update(overrides)
    return MonitorDevice(**fields)


class FakeStore:
    def __init__(self, devices: Iterable[MonitorDevice] = (), fail_on: Iterable[str] = ()) -> None:
        self.devices = list(devices)
        self.fail_on = set(fail_on)
        self.queried_times: List[int] = []
        self.deleted: List[List[int]] = []
        self.updated: List[List[Dict[str, Any]]] = []

    async def get_active_devices(self, time_utc: int) -> List[MonitorDevice]:
        self.queried_times.append(time_utc)
        if "select" in self.fail_on:
            raise DatabaseQueryError("database is locked", operation="select")
        return [d for d in self.devices if d.is_active_at(time_utc)]

    async def delete_devices(self, ids: List[int]) -> int:
        if "delete" in self.fail_on:
            raise DatabaseQueryError("database is locked", operation="delete")
        self.deleted.append(list(ids))
        self.devices = [d for d in self.devices if d.id not in ids]
        return len(ids)

    async def update_devices(self, partials: List[Dict[str, Any]]) -> int:
        if "update" in self.fail_on:
            raise DatabaseQueryError("database is locked", operation="update")
        self.updated.append(list(partials))
        by_id = {d.id: d for d in self.devices}
        for partial in partials:
            device = by_id.get(partial["id"])
            if device is not None:
                device.been_notified = partial["been_notified"]
        return len(partials)


class FakeNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.batches: List[List[MonitorDevice]] = []

    async def notify(self, devices: List[MonitorDevice]) -> int:
        if self.fail:
            raise DispatchError("SMTP server unreachable", device_count=len(devices))
        self.batches.append(list(devices))
        return len(devices)


class FakeResolver:
    def __init__(self, failing: Iterable[str] = ()) -> None:
        self.failing = set(failing)

    async def resolve(self, identifier: str) -> str:
        if identifier in self.failing:
            raise ResolutionError(identifier, f"Domain {identifier} does not exist (NXDOMAIN)")
        return identifier


class FakeProber:
    """
    Reachability by address; ``errors`` maps an address to the exception
    raised for it and ``delays`` to how long its check takes.
    """

    def __init__(
        self,
        results: Optional[Dict[str, bool]] = None,
        default: bool = True,
        errors: Optional[Dict[str, BaseException]] = None,
        delay: float = 0.0,
        delays: Optional[Dict[str, float]] = None,
    ) -> None:
        self.results = results or {}
        self.default = default
        self.errors = errors or {}
        self.delay = delay
        self.delays = delays or {}
        self.calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def probe(
        self,
        address: str,
        protocol: Protocol,
        port: Optional[int] = None,
        device_id: Optional[int] = None,
    ) -> bool:
        self.calls.append(address)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            delay = self.delays.get(address, self.delay)
            if delay:
                await asyncio.sleep(delay)
            if address in self.errors:
                raise self.errors[address]
            if protocol == Protocol.TCP and port is None:
                raise ConfigurationError("missing port", config_key="port", device_id=device_id)
            return self.results.get(address, self.default)
        finally:
            self.in_flight -= 1


def probe_error(address: str) -> ProbeError:
    return ProbeError(f"Error pinging {address}: Operation not permitted", address=address)
