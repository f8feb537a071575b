from datetime import datetime, timezone

import pytest

from config.settings import MonitoringSettings
from monitoring.monitor import MonitoringEngine
from tests.fakes import FakeProber, FakeResolver

NOON = datetime(2024, 5, 17, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def monitoring_settings():
    return MonitoringSettings(
        frequency_min=1,
        tcp_timeout_ms=200,
        icmp_timeout_ms=200,
        dns_timeout=1.0,
        max_concurrent_probes=5,
    )


@pytest.fixture
def make_engine(monitoring_settings):
    def _make(store, notifier, resolver=None, prober=None, clock=None):
        return MonitoringEngine(
            store,
            notifier,
            settings=monitoring_settings,
            resolver=resolver or FakeResolver(),
            prober=prober or FakeProber(),
            clock=clock or (lambda: NOON),
        )

    return _make
