import asyncio
import smtplib
from email import message_from_string
from email.header import decode_header, make_header

import pytest

from config.settings import SmtpSettings
from database.models import MonitorTrigger
from exceptions import DispatchError
from monitoring.alerts import (
    EmailNotifier,
    LogNotifier,
    build_message,
    build_notifier,
    describe_event,
)
from tests.fakes import FakeProber, FakeStore, build_device

SMTP_CALLS = []
REFUSED = set()


class DummySMTP:

    def __init__(self, host, port, timeout=None):
        assert isinstance(port, int)
        self.host = host
        self.port = port
        self.timeout = timeout
        self.logged_in = None
        self.sent_messages = []

    def __enter__(self):
        SMTP_CALLS.append(self)
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def login(self, username, password):
        self.logged_in = (username, password)

    def sendmail(self, from_addr, to_addrs, message):
        # smtplib encodes the message and the envelope as ASCII
        message.encode("ascii")
        for address in to_addrs:
            address.encode("ascii")
        if to_addrs[0] in REFUSED:
            raise smtplib.SMTPRecipientsRefused({to_addrs[0]: (550, b"No such user")})
        self.sent_messages.append((from_addr, to_addrs, message))


class UnreachableSMTP(DummySMTP):

    def __init__(self, host, port, timeout=None):
        raise ConnectionRefusedError(111, "Connection refused")


class RejectingLoginSMTP(DummySMTP):

    def login(self, username, password):
        raise smtplib.SMTPAuthenticationError(535, b"Authentication failed")


@pytest.fixture(autouse=True)
def reset_smtp_state():
    SMTP_CALLS.clear()
    REFUSED.clear()


@pytest.fixture
def smtp_settings():
    return SmtpSettings(
        address="smtp.example.com",
        port=465,
        user="monitor@example.com",
        password="secret",
        use_tls=True,
    )


def decoded_subject(raw):
    return str(make_header(decode_header(message_from_string(raw)["Subject"])))


# ----------------------------------------------------------------------
# Message content
# ----------------------------------------------------------------------

def test_trigger_message_uses_device_subject_and_body():
    device = build_device(email_subject="Router down", email_body="Call the ISP.", comments="rack 4")
    message = build_message(device, "monitor@example.com")

    assert str(message["Subject"]) == "Router down"
    assert message["To"] == "ops@example.com"
    body = message.get_payload(decode=True).decode("utf-8")
    assert body.startswith("Call the ISP.")
    assert "Trigger reached" in body
    assert "Comments: rack 4" in body


def test_cleared_message_for_persistent_device_already_notified():
    device = build_device(persist=True, been_notified=True, monitor_trigger=MonitorTrigger.OFFLINE)

    message = build_message(device, "monitor@example.com")

    assert str(message["Subject"]).startswith("[CLEARED]")
    assert describe_event(device).startswith("Alarm cleared")
    assert "is ONLINE again" in describe_event(device)


def test_one_shot_device_never_reports_cleared():
    device = build_device(persist=False, been_notified=True)

    assert describe_event(device).startswith("Trigger reached")


# ----------------------------------------------------------------------
# EmailNotifier
# ----------------------------------------------------------------------

def test_email_notifier_sends_one_message_per_device(monkeypatch, smtp_settings):
    monkeypatch.setattr(smtplib, "SMTP_SSL", DummySMTP)
    devices = [
        build_device(notify="a@example.com"),
        build_device(notify="b@example.com", email_subject="Ünïcode subject"),
    ]

    delivered = asyncio.run(EmailNotifier(smtp_settings).notify(devices))

    assert delivered == 2
    [server] = SMTP_CALLS
    assert (server.host, server.port) == ("smtp.example.com", 465)
    assert server.logged_in == ("monitor@example.com", "secret")
    assert [to for _, to, _ in server.sent_messages] == [["a@example.com"], ["b@example.com"]]
    assert decoded_subject(server.sent_messages[1][2]) == "Ünïcode subject"


def test_plain_smtp_when_tls_disabled(monkeypatch, smtp_settings):
    monkeypatch.setattr(smtplib, "SMTP", DummySMTP)
    smtp_settings.use_tls = False

    delivered = asyncio.run(EmailNotifier(smtp_settings).notify([build_device()]))

    assert delivered == 1


def test_refused_recipient_is_skipped(monkeypatch, smtp_settings):
    monkeypatch.setattr(smtplib, "SMTP_SSL", DummySMTP)
    REFUSED.add("gone@example.com")
    devices = [build_device(notify="gone@example.com"), build_device(notify="ok@example.com")]

    delivered = asyncio.run(EmailNotifier(smtp_settings).notify(devices))

    assert delivered == 1


def test_non_ascii_recipient_is_skipped(monkeypatch, smtp_settings):
    monkeypatch.setattr(smtplib, "SMTP_SSL", DummySMTP)
    devices = [build_device(notify="ops@example.com"), build_device(notify="jörg@example.com")]

    delivered = asyncio.run(EmailNotifier(smtp_settings).notify(devices))

    assert delivered == 1
    [server] = SMTP_CALLS
    assert [to for _, to, _ in server.sent_messages] == [["ops@example.com"]]


def test_non_ascii_recipient_does_not_stall_the_cycle(monkeypatch, smtp_settings, make_engine):
    monkeypatch.setattr(smtplib, "SMTP_SSL", DummySMTP)
    mailed = build_device(notify="ops@example.com")
    unsendable = build_device(notify="jörg@example.com")
    store = FakeStore([mailed, unsendable])
    engine = make_engine(store, EmailNotifier(smtp_settings), prober=FakeProber(default=False))

    report = asyncio.run(engine.run_cycle())

    assert report.ok
    assert report.notified == 2
    assert store.deleted == [[mailed.id, unsendable.id]]


@pytest.mark.parametrize("smtp_class", [UnreachableSMTP, RejectingLoginSMTP])
def test_transport_failures_raise_dispatch_error(monkeypatch, smtp_settings, smtp_class):
    monkeypatch.setattr(smtplib, "SMTP_SSL", smtp_class)

    with pytest.raises(DispatchError) as excinfo:
        asyncio.run(EmailNotifier(smtp_settings).notify([build_device(), build_device()]))

    assert excinfo.value.details["device_count"] == 2


def test_empty_batch_does_not_connect(monkeypatch, smtp_settings):
    monkeypatch.setattr(smtplib, "SMTP_SSL", DummySMTP)

    assert asyncio.run(EmailNotifier(smtp_settings).notify([])) == 0
    assert SMTP_CALLS == []


# ----------------------------------------------------------------------
# Notifier selection
# ----------------------------------------------------------------------

def test_log_notifier_reports_every_device_delivered():
    assert asyncio.run(LogNotifier().notify([build_device(), build_device()])) == 2


def test_build_notifier_picks_by_smtp_address(smtp_settings):
    assert isinstance(build_notifier(smtp_settings), EmailNotifier)
    assert isinstance(build_notifier(SmtpSettings(address=None)), LogNotifier)
