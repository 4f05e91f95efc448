"""
Tests for the event log
"""
from models import EventType
from services.event_service import emit_event, list_events


class TestEmitEvent:
    """Tests for emit_event / list_events"""

    def test_round_id_may_also_appear_in_payload(self, db):
        event = emit_event(db, EventType.NEW_ROUND_STARTED, 3, round_id=3)

        assert event.round_id == 3
        assert event.data == {"round_id": 3}

    def test_amount_is_stored_as_string(self, db):
        event = emit_event(db, EventType.PARTICIPANT_JOINED, 1, address="0xaaa", amount=10 ** 20)
        assert event.data == {"address": "0xaaa", "amount": str(10 ** 20)}

    def test_event_without_round(self, db):
        event = emit_event(db, EventType.REWARD_WITHDRAWN, None, address="0xaaa", amount=5)
        assert event.round_id is None

    def test_list_events_since_id_and_type(self, db):
        first = emit_event(db, EventType.NEW_ROUND_STARTED, 1, round_id=1)
        emit_event(db, EventType.PARTICIPANT_JOINED, 1, address="0xaaa", amount=1)
        emit_event(db, EventType.PARTICIPANT_JOINED, 1, address="0xbbb", amount=1)

        tail = list_events(db, since_id=first.id)
        assert [e["event_type"] for e in tail] == ["PARTICIPANT_JOINED", "PARTICIPANT_JOINED"]

        joined = list_events(db, event_type=EventType.PARTICIPANT_JOINED, limit=1)
        assert [e["data"]["address"] for e in joined] == ["0xaaa"]


class TestInitPoolEvents:
    def test_init_pool_emits_round_one(self, db, pool):
        events = list_events(db)

        assert len(events) == 1
        assert events[0]["event_type"] == "NEW_ROUND_STARTED"
        assert events[0]["round_id"] == 1
        assert events[0]["data"] == {"round_id": 1}
