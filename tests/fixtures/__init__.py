"""
Test Fixtures Package
=====================

Test doubles for the compliance engine: a controllable clock, recording
and failing notifiers, misbehaving data gatherers and regulator gateways.
"""

from tests.fixtures.doubles import (
    FIXED_NOW,
    MutableClock,
    RecordingNotifier,
    FailingNotifier,
    SlowNotifier,
    FailingGatherer,
    SlowGatherer,
    ScriptedGateway,
    RecordingPreparer,
)

__all__ = [
    "FIXED_NOW",
    "MutableClock",
    "RecordingNotifier",
    "FailingNotifier",
    "SlowNotifier",
    "FailingGatherer",
    "SlowGatherer",
    "ScriptedGateway",
    "RecordingPreparer",
]
