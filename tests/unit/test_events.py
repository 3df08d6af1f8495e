"""Unit tests for the event log."""

import pytest

from comet_engine.core.models import EventLog
from comet_engine.core.models import events


class TestEventLog:
    """Tests for recording and querying events."""

    @pytest.fixture
    def log(self) -> EventLog:
        log = EventLog()
        log.emit(events.Supply("a", "a", 1))
        log.emit(events.Transfer("0x0", "a", 1))
        log.emit(events.LendersWithdrawPauseAction(True))
        return log

    def test_queries(self, log):
        assert len(log) == 3
        assert log.of_type(events.FlagPauseAction) == [events.LendersWithdrawPauseAction(True)]
        assert log.named("Transfer") == [events.Transfer("0x0", "a", 1)]
        assert log.since(2) == [events.LendersWithdrawPauseAction(True)]

    def test_truncate(self, log):
        log.truncate(1)
        assert list(log) == [events.Supply("a", "a", 1)]

    def test_to_dict_round_trip(self, log):
        data = log.to_list()

        assert data[0] == {"src": "a", "dst": "a", "amount": 1, "event": "Supply"}
        assert [events.event_from_dict(d) for d in data] == list(log)

    def test_unknown_event(self):
        with pytest.raises(ValueError):
            events.event_from_dict({"event": "Nope"})
