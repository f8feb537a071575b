from datetime import datetime, timedelta, timezone

from utils.helpers import TimeHelper
from utils.validators import DataValidator, TargetValidator


def test_hhmm_is_taken_in_utc():
    assert TimeHelper.to_hhmm(datetime(2024, 1, 1, 0, 0, tzinfo=timezone.utc)) == 0
    assert TimeHelper.to_hhmm(datetime(2024, 1, 1, 23, 59, tzinfo=timezone.utc)) == 2359

    # 09:15 at UTC+2 is 07:15 UTC
    plus_two = timezone(timedelta(hours=2))
    assert TimeHelper.to_hhmm(datetime(2024, 1, 1, 9, 15, tzinfo=plus_two)) == 715


def test_format_hhmm():
    assert TimeHelper.format_hhmm(705) == "07:05"
    assert TimeHelper.format_hhmm(2400) == "24:00"


def test_identifiers_accept_ips_and_hostnames():
    assert TargetValidator.is_valid_identifier("192.168.0.1")
    assert TargetValidator.is_valid_identifier("fe80::1")
    assert TargetValidator.is_valid_identifier("printer.office.example.com")
    assert TargetValidator.is_valid_identifier("localhost")


def test_identifiers_reject_garbage():
    assert not TargetValidator.is_valid_identifier("")
    assert not TargetValidator.is_valid_identifier("-bad.example.com")
    assert not TargetValidator.is_valid_identifier("bad..example.com")


def test_window_time_validator():
    assert DataValidator.is_valid_window_time(0)
    assert not DataValidator.is_valid_window_time(True)
    assert DataValidator.is_valid_window_time(2400)
    assert not DataValidator.is_valid_window_time(2401)
