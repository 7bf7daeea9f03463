"""Unit tests for ChatOrchestrator."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import threading
import time
from datetime import datetime, timezone
from unittest.mock import Mock

import pytest
from models.turn import GenerationResponse, IncomingTurn, InpaintJob, InpaintResult, Role, Turn
from services.chat_orchestrator import ChatOrchestrator, ConversationLocks
from services.errors import BadRequest, ConversationBusy, GenerationResponseInvalid, GenerationUnavailable
from services.generation_client import GenerationClient
from services.history_assembler import HistoryAssembler
from services.record_store import InMemoryRecordStore
from services.turn_reconciler import TurnReconciler


@pytest.fixture
def store():
    return InMemoryRecordStore([
        Turn(chat_id="c1", role=Role.USER, content="hi",
             timestamp=datetime(2026, 1, 1, 0, 0, 1, tzinfo=timezone.utc)).to_record(),
        Turn(chat_id="c1", role=Role.ASSISTANT, content="hello", image="x.png",
             timestamp=datetime(2026, 1, 1, 0, 0, 2, tzinfo=timezone.utc)).to_record(),
    ])


@pytest.fixture
def generation_client():
    client = Mock(spec=GenerationClient)
    client.generate.return_value = GenerationResponse(message="sure", image="y.png", image_name="y")
    return client


@pytest.fixture
def orchestrator(store, generation_client):
    return ChatOrchestrator(
        assembler=HistoryAssembler(store),
        generation_client=generation_client,
        reconciler=TurnReconciler(store),
    )


class TestChatOrchestrator:
    """Test suite for ChatOrchestrator."""

    def test_scenario_request_sent_to_generator(self, orchestrator, generation_client):
        """Test history, resolved image and prompt reach the generation call."""
        orchestrator.handle_chat(IncomingTurn(chat_id="c1", content="more"))

        request = generation_client.generate.call_args.args[0]
        lines = request.prompt.split("\n")
        assert request.image == "x.png"
        assert "User: hi" in lines
        assert "Assistant: hello" in lines
        assert request.prompt.endswith("Prompt: more")

    def test_signed_in_turn_persists_two_records(self, orchestrator, store):
        outcome = orchestrator.handle_chat(IncomingTurn(chat_id="c1", content="more", user_id="u1"))

        assert outcome.persisted is True
        assert store.count() == 4
        assert outcome.user_turn.image == "x.png"
        assert outcome.assistant_turn.content == "sure"

    def test_anonymous_turn_persists_nothing(self, orchestrator, store):
        outcome = orchestrator.handle_chat(IncomingTurn(chat_id="c1", content="more"))

        assert outcome.persisted is False
        assert store.count() == 2

    def test_invalid_generation_persists_nothing(self, orchestrator, store, generation_client):
        generation_client.generate.side_effect = GenerationResponseInvalid("body is not JSON")

        with pytest.raises(GenerationResponseInvalid):
            orchestrator.handle_chat(IncomingTurn(chat_id="c1", content="more", user_id="u1"))

        assert store.count() == 2

    def test_unavailable_generation_persists_nothing(self, orchestrator, store, generation_client):
        generation_client.generate.side_effect = GenerationUnavailable("refused")

        with pytest.raises(GenerationUnavailable):
            orchestrator.handle_chat(IncomingTurn(chat_id="c1", content="more", user_id="u1"))

        assert store.count() == 2

    def test_subject_defaults_to_current_participant(self, orchestrator, generation_client):
        orchestrator.handle_chat(IncomingTurn(chat_id="c1", content="more", user_id="u9"))

        assert generation_client.generate.call_args.args[0].object == "u9"

    def test_explicit_subject(self, orchestrator, generation_client):
        orchestrator.handle_chat(IncomingTurn(chat_id="c1", content="more", user_id="u9", object="obj-1"))

        assert generation_client.generate.call_args.args[0].object == "obj-1"

    def test_missing_chat_id(self, orchestrator, generation_client):
        with pytest.raises(BadRequest):
            orchestrator.handle_chat(IncomingTurn(chat_id="", content="hi"))

        generation_client.generate.assert_not_called()

    def test_inpaint_persists_for_signed_in(self, orchestrator, store, generation_client):
        generation_client.inpaint.return_value = InpaintResult(image="edited.png", image_name="hat")

        turn = orchestrator.handle_inpaint(InpaintJob(chat_id="c1", image="src.png", user_id="u1", image_name="hat"))

        assert turn.image == "edited.png"
        assert store.count() == 3

    def test_inpaint_requires_image(self, orchestrator):
        with pytest.raises(BadRequest, match="image"):
            orchestrator.handle_inpaint(InpaintJob(chat_id="c1", image=""))

    def test_same_conversation_turns_do_not_interleave(self, store):
        """Test two turns of one conversation run one after the other."""
        active = []
        overlaps = []

        def slow_generate(request):
            active.append(request.chat_id)
            if len(active) > 1:
                overlaps.append(list(active))
            time.sleep(0.05)
            active.pop()
            return GenerationResponse(message="ok")

        client = Mock(spec=GenerationClient)
        client.generate.side_effect = slow_generate
        orchestrator = ChatOrchestrator(HistoryAssembler(store), client, TurnReconciler(store))

        threads = [
            threading.Thread(target=orchestrator.handle_chat, args=(IncomingTurn(chat_id="c1", content=f"m{i}", user_id="u1"),))
            for i in range(3)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
        assert store.count() == 2 + 6

    def test_other_conversation_is_not_blocked(self, store):
        """Test a turn of c2 completes while a turn of c1 is stuck in generation."""
        started = threading.Event()
        release = threading.Event()

        def generate(request):
            if request.chat_id == "c1":
                started.set()
                release.wait(5)
            return GenerationResponse(message="ok")

        client = Mock(spec=GenerationClient)
        client.generate.side_effect = generate
        orchestrator = ChatOrchestrator(HistoryAssembler(store), client, TurnReconciler(store), lock_timeout=0.5)

        stuck = threading.Thread(target=orchestrator.handle_chat, args=(IncomingTurn(chat_id="c1", content="slow"),))
        stuck.start()
        try:
            assert started.wait(5)
            outcome = orchestrator.handle_chat(IncomingTurn(chat_id="c2", content="fast", user_id="u2"))
        finally:
            release.set()
            stuck.join()

        assert outcome.assistant_turn.chat_id == "c2"
        assert outcome.persisted is True

    def test_busy_conversation_times_out(self, store):
        """Test a second turn gives up when the first holds the conversation too long."""
        started = threading.Event()
        release = threading.Event()

        def generate(request):
            started.set()
            release.wait(5)
            return GenerationResponse(message="ok")

        client = Mock(spec=GenerationClient)
        client.generate.side_effect = generate
        orchestrator = ChatOrchestrator(HistoryAssembler(store), client, TurnReconciler(store), lock_timeout=0.05)

        stuck = threading.Thread(target=orchestrator.handle_chat, args=(IncomingTurn(chat_id="c1", content="slow"),))
        stuck.start()
        try:
            assert started.wait(5)
            with pytest.raises(ConversationBusy):
                orchestrator.handle_chat(IncomingTurn(chat_id="c1", content="second", user_id="u1"))
        finally:
            release.set()
            stuck.join()

        assert client.generate.call_count == 1
        assert store.count() == 2


class TestConversationLocks:
    """Test suite for ConversationLocks."""

    def test_entries_released_after_use(self):
        locks = ConversationLocks(timeout=1)

        with locks.hold("c1"):
            with locks.hold("c2"):
                assert len(locks) == 2

        assert len(locks) == 0

    def test_entry_released_after_timeout(self):
        locks = ConversationLocks(timeout=0.01)

        with locks.hold("c1"):
            with pytest.raises(ConversationBusy):
                with locks.hold("c1"):
                    pass
            assert len(locks) == 1

        assert len(locks) == 0

    def test_entry_released_after_error(self):
        locks = ConversationLocks(timeout=1)

        with pytest.raises(RuntimeError):
            with locks.hold("c1"):
                raise RuntimeError("boom")

        assert len(locks) == 0
        with locks.hold("c1"):
            pass

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            ConversationLocks(timeout=0)
