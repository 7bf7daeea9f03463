"""History assembly and implicit context resolution for a chat turn."""
import logging
from typing import List, Union

from config import DECODE_POLICY
from models.turn import AssembledHistory, IncomingTurn, Role, Turn
from services.decoding import DecodePolicy, decode_turns
from services.record_store import RecordStore

logger = logging.getLogger(__name__)


def order_history(turns: List[Turn]) -> List[Turn]:
    """Sort turns ascending by timestamp; ties keep store order."""
    return sorted(turns, key=lambda turn: turn.timestamp)


def resolve_image(history: List[Turn], explicit_image: str = "") -> str:
    """
    Pick the image a turn refers to.

    The explicit image wins; otherwise the most recent non-empty image in the
    ordered history; otherwise empty.
    """
    if explicit_image:
        return explicit_image
    for turn in reversed(history):
        if turn.image:
            return turn.image
    return ""


def resolve_subject(history: List[Turn], explicit_subject: str = "", current_user_id: str = "") -> str:
    """
    Pick the subject ("object") a turn refers to.

    The explicit subject wins. Otherwise the participant id of the most recent
    user turn with a non-empty id, where the new turn's own participant counts
    as the most recent user turn.
    """
    if explicit_subject:
        return explicit_subject
    if current_user_id:
        return current_user_id
    for turn in reversed(history):
        if turn.role is Role.USER and turn.user_id:
            return turn.user_id
    return ""


class HistoryAssembler:
    """Load a conversation's turns and resolve image and subject for the new turn."""

    def __init__(self, store: RecordStore, decode_policy: Union[str, DecodePolicy] = DECODE_POLICY):
        """
        Args:
            store: Record store holding the persisted turns
            decode_policy: What to do with records that fail to decode
        """
        self.store = store
        self.decode_policy = DecodePolicy.parse(decode_policy)

    def assemble(self, incoming: IncomingTurn) -> AssembledHistory:
        """
        Build the ordered history and resolved context for an incoming turn.

        Args:
            incoming: The caller's request

        Returns:
            AssembledHistory with history sorted ascending by timestamp

        Raises:
            StoreUnavailable: If the store cannot be read
            DecodeFailed: Under the "fail" policy, if a record does not decode
        """
        records = self.store.find_by_chat(incoming.chat_id)
        batch = decode_turns(records, self.decode_policy, source=f"chat_id={incoming.chat_id}")
        history = order_history(batch.turns)

        image = resolve_image(history, incoming.image)
        if image and not incoming.image:
            logger.info("Fallback to image from history")

        subject = resolve_subject(history, incoming.object, incoming.user_id)
        logger.info(
            "Resolved object value",
            extra={"fields": {"chat_id": incoming.chat_id, "object": subject, "history_turns": len(history)}}
        )

        return AssembledHistory(history=history, image=image, subject=subject)
