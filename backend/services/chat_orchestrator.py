"""Request pipeline for one conversational turn."""
import logging
import threading
import time
from contextlib import contextmanager, nullcontext
from typing import Dict, Iterator, List, Optional

from config import CONVERSATION_LOCK_TIMEOUT_SECONDS, SERIALIZE_CONVERSATIONS
from models.turn import IncomingTurn, InpaintJob, Turn, TurnOutcome
from services.errors import BadRequest, ConversationBusy
from services.generation_client import GenerationClient
from services.history_assembler import HistoryAssembler
from services.prompt_composer import PromptComposer
from services.turn_reconciler import TurnReconciler

logger = logging.getLogger(__name__)


class ConversationLocks:
    """
    Locks keyed by exact conversation id.

    Turns of the same conversation run one at a time, so two concurrent
    requests cannot interleave their read-generate-write steps. Different
    conversations never share a lock. An entry lives only while some request
    holds or waits for it.
    """

    def __init__(self, timeout: float = CONVERSATION_LOCK_TIMEOUT_SECONDS):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: Dict[str, List] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, chat_id: str) -> Iterator[None]:
        """
        Hold the conversation's lock for the duration of the block.

        Raises:
            ConversationBusy: If the lock is not free within the timeout
        """
        with self._guard:
            entry = self._locks.setdefault(chat_id, [threading.Lock(), 0])
            entry[1] += 1

        try:
            if not entry[0].acquire(timeout=self.timeout):
                logger.warning(
                    "Timed out waiting for conversation lock",
                    extra={"fields": {"chat_id": chat_id, "timeout": self.timeout}}
                )
                raise ConversationBusy(
                    f"Another turn of this conversation is still running after {self.timeout}s",
                    {"chat_id": chat_id}
                )
            try:
                yield
            finally:
                entry[0].release()
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[chat_id]


class ChatOrchestrator:
    """Run history assembly, prompt composition, generation and reconciliation in order."""

    def __init__(
        self,
        assembler: HistoryAssembler,
        generation_client: GenerationClient,
        reconciler: TurnReconciler,
        composer: Optional[PromptComposer] = None,
        serialize_conversations: bool = SERIALIZE_CONVERSATIONS,
        lock_timeout: float = CONVERSATION_LOCK_TIMEOUT_SECONDS
    ):
        self.assembler = assembler
        self.generation_client = generation_client
        self.reconciler = reconciler
        self.composer = composer or PromptComposer()
        self.locks = ConversationLocks(lock_timeout) if serialize_conversations else None

    def handle_chat(self, incoming: IncomingTurn) -> TurnOutcome:
        """
        Process one chat turn end to end.

        Args:
            incoming: The caller's request

        Returns:
            TurnOutcome whose assistant turn is returned to the caller

        Raises:
            BadRequest: If chat_id is empty
            StoreUnavailable, DecodeFailed: History could not be read
            GenerationUnavailable, GenerationTimeout, GenerationResponseInvalid: Generation failed
            PersistenceFailed: The turns could not be written
            ConversationBusy: Another turn of the conversation held it too long
        """
        if not incoming.chat_id:
            raise BadRequest("Missing chat_id")

        start_time = time.time()
        with self._serialized(incoming.chat_id):
            assembled = self.assembler.assemble(incoming)
            user_turn = self.reconciler.build_user_turn(incoming, assembled.image)
            request = self.composer.build_request(incoming, assembled, user_turn)
            generation = self.generation_client.generate(request)
            outcome = self.reconciler.reconcile(incoming, user_turn, generation)

        latency_ms = int((time.time() - start_time) * 1000)
        logger.info(
            f"Chat turn processed in {latency_ms}ms",
            extra={"fields": {"chat_id": incoming.chat_id, "persisted": outcome.persisted, "latency_ms": latency_ms}}
        )
        return outcome

    def handle_inpaint(self, job: InpaintJob) -> Turn:
        """
        Process one image edit: generate, then reconcile without history.

        Returns:
            The assistant turn carrying the edited image
        """
        if not job.chat_id:
            raise BadRequest("Missing chat_id")
        if not job.image:
            raise BadRequest("Missing image")

        with self._serialized(job.chat_id):
            result = self.generation_client.inpaint(job)
            return self.reconciler.reconcile_inpaint(job, result)

    def _serialized(self, chat_id: str):
        if self.locks is None:
            return nullcontext()
        return self.locks.hold(chat_id)
