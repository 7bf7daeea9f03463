"""Read-only retrieval of stored turns for display."""
import logging
from typing import Union

from config import DECODE_POLICY
from models.turn import TurnBatch
from services.decoding import DecodePolicy, decode_turns
from services.errors import BadRequest
from services.record_store import RecordStore

logger = logging.getLogger(__name__)


class HistoryQuery:
    """Fetch a conversation's or a participant's turns in store-natural order."""

    def __init__(self, store: RecordStore, decode_policy: Union[str, DecodePolicy] = DECODE_POLICY):
        self.store = store
        self.decode_policy = DecodePolicy.parse(decode_policy)

    def by_chat(self, chat_id: str) -> TurnBatch:
        """
        Return every stored turn of a conversation.

        Raises:
            BadRequest: If chat_id is empty
            StoreUnavailable: If the store cannot be read
            DecodeFailed: Under the "fail" policy, if a record does not decode
        """
        if not chat_id:
            raise BadRequest("Missing chat_id")

        logger.info("Fetching chat history for id", extra={"fields": {"chat_id": chat_id}})
        records = self.store.find_by_chat(chat_id)
        return decode_turns(records, self.decode_policy, source=f"chat_id={chat_id}")

    def by_user(self, user_id: str) -> TurnBatch:
        """
        Return every stored turn of a participant across conversations.

        Raises:
            BadRequest: If user_id is empty
            StoreUnavailable: If the store cannot be read
            DecodeFailed: Under the "fail" policy, if a record does not decode
        """
        if not user_id:
            raise BadRequest("Missing user_id")

        logger.info("Fetching chat history for user_id", extra={"fields": {"user_id": user_id}})
        records = self.store.find_by_user(user_id)
        batch = decode_turns(records, self.decode_policy, source=f"user_id={user_id}")
        logger.info(f"Fetched {len(batch.turns)} messages", extra={"fields": {"user_id": user_id}})
        return batch
