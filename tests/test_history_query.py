"""Unit tests for HistoryQuery and record decoding."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

from unittest.mock import Mock

import pytest
from models.turn import GenerationResponse, IncomingTurn
from services.decoding import DecodePolicy
from services.errors import BadRequest, DecodeFailed, StoreUnavailable
from services.history_query import HistoryQuery
from services.record_store import InMemoryRecordStore, RecordStore
from services.turn_reconciler import TurnReconciler

GOOD = {
    "chat_id": "c1",
    "role": "user",
    "content": "hi",
    "timestamp": "2026-02-21T02:08:26.18976+00:00",
    "user_id": "u1",
    "image": "",
    "image_name": "",
}
BAD = {"chat_id": "c1", "role": "user", "content": "hi", "user_id": "u1", "timestamp": "yesterday"}


class TestHistoryQuery:
    """Test suite for HistoryQuery."""

    def test_by_chat_round_trip(self):
        """Test a reconciled turn reads back equal on every field."""
        store = InMemoryRecordStore()
        reconciler = TurnReconciler(store)
        incoming = IncomingTurn(chat_id="c1", content="draw a cat", user_id="u1")
        user_turn = reconciler.build_user_turn(incoming, "ref.png")
        outcome = reconciler.reconcile(incoming, user_turn, GenerationResponse("here", "cat.png", "cat"))

        batch = HistoryQuery(store).by_chat("c1")

        assert batch.turns == [outcome.user_turn, outcome.assistant_turn]
        assert batch.skipped == 0

    def test_by_chat_keeps_store_order(self):
        later = dict(GOOD, content="second", timestamp="2026-02-21T03:00:00Z")
        earlier = dict(GOOD, content="first", timestamp="2026-02-21T01:00:00Z")
        store = InMemoryRecordStore([later, earlier])

        batch = HistoryQuery(store).by_chat("c1")

        assert [t.content for t in batch.turns] == ["second", "first"]

    def test_by_user_across_conversations(self):
        store = InMemoryRecordStore([
            GOOD,
            dict(GOOD, chat_id="c2", content="other chat"),
            dict(GOOD, user_id="someone-else"),
        ])

        batch = HistoryQuery(store).by_user("u1")

        assert sorted(t.chat_id for t in batch.turns) == ["c1", "c2"]

    def test_by_user_empty_id(self):
        with pytest.raises(BadRequest, match="Missing user_id"):
            HistoryQuery(InMemoryRecordStore()).by_user("")

    def test_by_chat_empty_id(self):
        with pytest.raises(BadRequest):
            HistoryQuery(InMemoryRecordStore()).by_chat("")

    def test_skip_policy_counts_bad_records(self):
        """Test a bad record is dropped without losing the rest."""
        store = InMemoryRecordStore([GOOD, BAD, dict(GOOD, content="again")])

        batch = HistoryQuery(store, decode_policy=DecodePolicy.SKIP).by_chat("c1")

        assert [t.content for t in batch.turns] == ["hi", "again"]
        assert batch.skipped == 1

    def test_fail_policy_aborts(self):
        store = InMemoryRecordStore([GOOD, BAD])

        with pytest.raises(DecodeFailed) as exc_info:
            HistoryQuery(store, decode_policy="fail").by_user("u1")

        assert exc_info.value.error.details["index"] == 1

    def test_store_unavailable_propagates(self):
        store = Mock(spec=RecordStore)
        store.find_by_chat.side_effect = StoreUnavailable("down")

        with pytest.raises(StoreUnavailable):
            HistoryQuery(store).by_chat("c1")

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError, match="decode policy"):
            HistoryQuery(InMemoryRecordStore(), decode_policy="ignore")
