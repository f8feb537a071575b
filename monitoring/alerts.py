"""
============================================================================
PING MONITOR - NOTIFIERS
============================================================================
Delivers the notifications produced by a monitoring cycle.

EmailNotifier  ← one SMTP session per batch, one message per device
LogNotifier    ← used when no SMTP server is configured

Both expose ``async notify(devices) -> int`` returning the number of
messages delivered.

Failure model
-------------
A refused or non-ASCII recipient, or a rejected message, only affects that
device: it is logged and the batch carries on. Failing to connect, negotiate TLS,
authenticate or keep the session alive fails the whole batch with a
DispatchError, and the engine then leaves device state untouched.
============================================================================
"""

import asyncio
import smtplib
from email.header import Header
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import List, Sequence, Tuple, Union

from config.settings import SmtpSettings
from database.models import MonitorDevice, MonitorTrigger
from exceptions import DispatchError
from utils.helpers import TimeHelper
from utils.logger import get_logger, log_execution_time


logger = get_logger("Notifier")


# ============================================================================
# MESSAGE CONTENT
# ============================================================================

def is_alarm_cleared(device: MonitorDevice) -> bool:
    """
    A notification closes an alarm when the device is persistent and was
    already notified. Must be evaluated before the cycle updates the row.
    """
    return bool(device.persist and device.been_notified)


def describe_event(device: MonitorDevice) -> str:
    """One-line status shown in logs and appended to the email body."""
    if is_alarm_cleared(device):
        state = "OFFLINE" if device.monitor_trigger == MonitorTrigger.ONLINE else "ONLINE"
        return (
            f"Alarm cleared: {device.display_name} is {state} again "
            f"({device.monitor_trigger.value} condition no longer met)"
        )

    return f"Trigger reached: {device.display_name} is {device.monitor_trigger.value}"


def build_message(device: MonitorDevice, sender: str) -> MIMEText:
    """
    Build the email for one device from its configured subject and body.
    """
    subject = device.email_subject
    if is_alarm_cleared(device):
        subject = f"[CLEARED] {subject}"

    footer = [
        describe_event(device),
        f"Checked at {TimeHelper.get_utc_now():%Y-%m-%d %H:%M} UTC",
        f"Requested by: {device.requested_by}",
    ]
    if device.comments:
        footer.append(f"Comments: {device.comments}")

    body = f"{device.email_body}\n\n--\n" + "\n".join(footer)

    message = MIMEText(body, "plain", "utf-8")
    message["Subject"] = Header(subject, "utf-8")
    message["From"] = sender
    message["To"] = device.notify
    message["Date"] = formatdate(localtime=False)
    message["Message-ID"] = make_msgid(domain="ping-monitor")
    return message


# ============================================================================
# EMAIL NOTIFIER
# ============================================================================

class EmailNotifier:
    """
    Sends notification emails through an SMTP server.

    smtplib is blocking, so each batch is sent from the loop's default
    executor over a single connection.
    """

    def __init__(self, smtp_settings: SmtpSettings):
        self.settings = smtp_settings
        self.sender = smtp_settings.from_address

        logger.info(
            f"EmailNotifier created — server={smtp_settings.address}:{smtp_settings.port}, "
            f"tls={smtp_settings.use_tls}, sender={self.sender}"
        )

    async def notify(self, devices: Sequence[MonitorDevice]) -> int:
        if not devices:
            return 0

        messages = [(device, build_message(device, self.sender)) for device in devices]
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._send_batch, messages)

    def _connect(self) -> Union[smtplib.SMTP, smtplib.SMTP_SSL]:
        smtp_factory = smtplib.SMTP_SSL if self.settings.use_tls else smtplib.SMTP
        return smtp_factory(
            self.settings.address,
            self.settings.port,
            timeout=self.settings.timeout
        )

    @log_execution_time
    def _send_batch(self, messages: List[Tuple[MonitorDevice, MIMEText]]) -> int:
        delivered = 0

        try:
            with self._connect() as server:
                if self.settings.user:
                    server.login(self.settings.user, self.settings.password.get_secret_value())

                for device, message in messages:
                    if not device.notify.isascii():
                        logger.warning(
                            f"[Email] Skipping device {device.id}: "
                            f"{device.notify!r} is not an ASCII address"
                        )
                        continue

                    try:
                        server.sendmail(self.sender, [device.notify], message.as_string())
                    except (
                        smtplib.SMTPRecipientsRefused,
                        smtplib.SMTPDataError,
                        UnicodeEncodeError,
                    ) as e:
                        logger.warning(
                            f"[Email] Could not notify {device.notify} "
                            f"for device {device.id}: {e}"
                        )
                        continue

                    delivered += 1
                    logger.info(f"[Email] Sent to {device.notify} — {describe_event(device)}")

        except smtplib.SMTPAuthenticationError as e:
            raise DispatchError(
                f"SMTP authentication failed for user {self.settings.user}",
                device_count=len(messages),
                cause=e,
            ) from e
        except (smtplib.SMTPException, OSError) as e:
            raise DispatchError(
                f"SMTP transport error with {self.settings.address}:{self.settings.port}: {e}",
                device_count=len(messages),
                cause=e,
            ) from e

        return delivered


# ============================================================================
# LOG NOTIFIER
# ============================================================================

class LogNotifier:
    """Writes every notification to the log instead of sending it."""

    async def notify(self, devices: Sequence[MonitorDevice]) -> int:
        for device in devices:
            logger.info(
                f"[Notify] {device.notify} ← \"{device.email_subject}\": "
                f"{describe_event(device)}"
            )
        return len(devices)


def build_notifier(smtp_settings: SmtpSettings) -> Union[EmailNotifier, LogNotifier]:
    """EmailNotifier when an SMTP server is configured, LogNotifier otherwise."""
    if smtp_settings.enabled:
        return EmailNotifier(smtp_settings)

    logger.warning("No SMTP server configured (SMTP_ADDRESS), notifications will only be logged")
    return LogNotifier()
