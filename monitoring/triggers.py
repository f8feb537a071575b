"""
Trigger classification for monitored devices.

Pure decision logic: given a probe result and a device's trigger
configuration, decide whether a notification goes out and whether it
closes a persistent alarm.
"""

from dataclasses import dataclass

from database.models import MonitorTrigger


@dataclass(frozen=True)
class TriggerDecision:
    """Outcome of classifying one probe result."""
    notify: bool
    alarm_ended: bool = False


def criteria_met(reachable: bool, trigger: MonitorTrigger) -> bool:
    """True when the reachability matches the configured trigger."""
    if trigger == MonitorTrigger.ONLINE:
        return reachable
    if trigger == MonitorTrigger.OFFLINE:
        return not reachable
    return False


def classify(
    reachable: bool,
    trigger: MonitorTrigger,
    persist: bool,
    been_notified: bool = False,
) -> TriggerDecision:
    """
    Classify a probe result.

    One-shot devices notify whenever the trigger condition holds.
    Persistent devices notify once when the condition starts (rising edge)
    and once when it stops while an alarm is open (falling edge); only the
    falling edge ends the alarm.
    """
    met = criteria_met(reachable, trigger)

    if not persist:
        return TriggerDecision(notify=met)

    rising = not been_notified and met
    falling = been_notified and not met
    return TriggerDecision(notify=rising or falling, alarm_ended=falling)
