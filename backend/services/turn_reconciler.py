"""Turn reconciliation: build the user and assistant turns and persist them."""
import logging
from typing import Optional

from models.turn import (
    GenerationResponse,
    IncomingTurn,
    InpaintJob,
    InpaintResult,
    Role,
    Turn,
    TurnClock,
    TurnOutcome,
)
from services.record_store import RecordStore

logger = logging.getLogger(__name__)

INPAINT_REPLY = "Here is your inpainted image."


class TurnReconciler:
    """
    Combine a user turn and the generated reply into the durable record.

    Turns are persisted only for signed-in participants (non-empty user_id);
    anonymous turns are never stored. Callers get the outcome only after the
    write has committed, so a failed write surfaces as PersistenceFailed
    instead of a success response.
    """

    def __init__(self, store: RecordStore, clock: Optional[TurnClock] = None):
        self.store = store
        self.clock = clock or TurnClock()

    def build_user_turn(self, incoming: IncomingTurn, resolved_image: str) -> Turn:
        return Turn(
            chat_id=incoming.chat_id,
            role=Role.USER,
            content=incoming.content,
            timestamp=self.clock.now(),
            user_id=incoming.user_id,
            image=resolved_image,
        )

    def reconcile(
        self,
        incoming: IncomingTurn,
        user_turn: Turn,
        generation: GenerationResponse
    ) -> TurnOutcome:
        """
        Build the assistant turn and persist both turns if the caller is signed in.

        Args:
            incoming: The caller's request
            user_turn: Turn built by build_user_turn() before generation
            generation: Reply from the generation service

        Returns:
            TurnOutcome with both turns and whether they were written

        Raises:
            PersistenceFailed: If the store rejects the write
        """
        assistant_turn = Turn(
            chat_id=incoming.chat_id,
            role=Role.ASSISTANT,
            content=generation.message,
            timestamp=self.clock.now(),
            user_id=incoming.user_id,
            image=generation.image,
            image_name=generation.image_name,
        )

        persisted = False
        if incoming.user_id:
            self.store.insert_many([user_turn.to_record(), assistant_turn.to_record()])
            persisted = True
            logger.info(
                "Persisted chat turn",
                extra={"fields": {"chat_id": incoming.chat_id, "user_id": incoming.user_id}}
            )
        else:
            logger.info("Anonymous turn, skipping persistence", extra={"fields": {"chat_id": incoming.chat_id}})

        return TurnOutcome(user_turn=user_turn, assistant_turn=assistant_turn, persisted=persisted)

    def reconcile_inpaint(self, job: InpaintJob, result: InpaintResult) -> Turn:
        """Build the assistant turn for an image edit and persist it if the caller is signed in."""
        assistant_turn = Turn(
            chat_id=job.chat_id,
            role=Role.ASSISTANT,
            content=INPAINT_REPLY,
            timestamp=self.clock.now(),
            user_id=job.user_id,
            image=result.image,
            image_name=result.image_name,
        )

        if job.user_id:
            self.store.insert_many([assistant_turn.to_record()])
            logger.info(
                "Persisted inpaint turn",
                extra={"fields": {"chat_id": job.chat_id, "user_id": job.user_id}}
            )

        return assistant_turn
