import pytest

from database.models import MonitorTrigger
from monitoring.triggers import TriggerDecision, classify, criteria_met

ONLINE = MonitorTrigger.ONLINE
OFFLINE = MonitorTrigger.OFFLINE


def test_criteria_met_matches_trigger_direction():
    assert criteria_met(True, ONLINE) is True
    assert criteria_met(False, ONLINE) is False
    assert criteria_met(False, OFFLINE) is True
    assert criteria_met(True, OFFLINE) is False


@pytest.mark.parametrize(
    "reachable, trigger, notify",
    [
        (True, ONLINE, True),
        (False, ONLINE, False),
        (False, OFFLINE, True),
        (True, OFFLINE, False),
    ],
)
def test_one_shot_notifies_whenever_condition_holds(reachable, trigger, notify):
    # been_notified is ignored for one-shot devices
    for been_notified in (False, True):
        decision = classify(reachable, trigger, persist=False, been_notified=been_notified)
        assert decision == TriggerDecision(notify=notify, alarm_ended=False)


@pytest.mark.parametrize(
    "reachable, trigger, been_notified, notify, alarm_ended",
    [
        # rising edge
        (False, OFFLINE, False, True, False),
        (True, ONLINE, False, True, False),
        # alarm still active
        (False, OFFLINE, True, False, False),
        (True, ONLINE, True, False, False),
        # falling edge
        (True, OFFLINE, True, True, True),
        (False, ONLINE, True, True, True),
        # quiet
        (True, OFFLINE, False, False, False),
        (False, ONLINE, False, False, False),
    ],
)
def test_persistent_notifies_on_edges_only(reachable, trigger, been_notified, notify, alarm_ended):
    decision = classify(reachable, trigger, persist=True, been_notified=been_notified)
    assert decision.notify is notify
    assert decision.alarm_ended is alarm_ended
