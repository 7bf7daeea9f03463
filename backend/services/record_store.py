"""Record store adapters for persisted conversation turns."""
import copy
import logging
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from supabase import create_client, Client, ClientOptions

from config import SUPABASE_URL, SUPABASE_KEY, MESSAGES_TABLE, STORE_TIMEOUT_SECONDS, STORE_PAGE_SIZE
from services.errors import StoreUnavailable, PersistenceFailed

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class RecordStore(ABC):
    """
    Opaque ordered-record store of conversation turns.

    Records are plain dicts in the persisted layout produced by Turn.to_record().
    Implementations must be safe to share between concurrent requests.
    """

    @abstractmethod
    def find_by_chat(self, chat_id: str) -> List[Record]:
        """Return every record of a conversation in store-natural order."""

    @abstractmethod
    def find_by_user(self, user_id: str) -> List[Record]:
        """Return every record of a participant across all conversations."""

    @abstractmethod
    def insert_many(self, records: List[Record]) -> None:
        """Persist records as a single logical write."""


class SupabaseRecordStore(RecordStore):
    """Record store backed by a Supabase (PostgREST) table."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table_name: str = MESSAGES_TABLE,
        timeout: float = STORE_TIMEOUT_SECONDS,
        page_size: int = STORE_PAGE_SIZE,
        client: Optional[Client] = None
    ):
        """
        Initialize the record store with a Supabase client.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Name of the table holding one row per turn
            timeout: Deadline in seconds for every read and write
            page_size: Rows fetched per read request; keep at or below the PostgREST max-rows limit
            client: Pre-built client, mainly for tests

        Raises:
            ValueError: If Supabase credentials are missing and no client is given
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
            client = create_client(
                supabase_url,
                supabase_key,
                options=ClientOptions(postgrest_client_timeout=timeout)
            )

        self.client: Client = client
        self.table_name = table_name
        self.timeout = timeout
        self.page_size = page_size

        logger.info(f"Initialized SupabaseRecordStore with table: {table_name}")

    def find_by_chat(self, chat_id: str) -> List[Record]:
        return self._select("chat_id", chat_id)

    def find_by_user(self, user_id: str) -> List[Record]:
        return self._select("user_id", user_id)

    def insert_many(self, records: List[Record]) -> None:
        if not records:
            return
        try:
            self.client.table(self.table_name).insert(records).execute()
            logger.debug(f"Inserted {len(records)} records into {self.table_name}")
        except Exception as e:
            error_msg = f"Failed to insert records: {str(e)}"
            logger.error(error_msg)
            raise PersistenceFailed(error_msg, {"records": len(records)})

    def _select(self, column: str, value: str) -> List[Record]:
        """Read every matching row, one page at a time, until a short page comes back."""
        rows: List[Record] = []
        offset = 0
        while True:
            try:
                result = (
                    self.client.table(self.table_name)
                    .select("*")
                    .eq(column, value)
                    .order("timestamp", desc=False)
                    .range(offset, offset + self.page_size - 1)
                    .execute()
                )
            except Exception as e:
                error_msg = f"Failed to query {self.table_name} by {column}: {str(e)}"
                logger.error(error_msg)
                raise StoreUnavailable(error_msg, {column: value, "offset": offset})

            page = result.data if result.data else []
            rows.extend(page)
            if len(page) < self.page_size:
                return rows
            offset += self.page_size


class InMemoryRecordStore(RecordStore):
    """Process-local record store; keeps records in insertion order."""

    def __init__(self, records: Optional[List[Record]] = None):
        self._records: List[Record] = [copy.deepcopy(r) for r in records or []]
        self._lock = threading.Lock()

    def find_by_chat(self, chat_id: str) -> List[Record]:
        return self._find("chat_id", chat_id)

    def find_by_user(self, user_id: str) -> List[Record]:
        return self._find("user_id", user_id)

    def insert_many(self, records: List[Record]) -> None:
        with self._lock:
            self._records.extend(copy.deepcopy(r) for r in records)

    def count(self) -> int:
        with self._lock:
            return len(self._records)

    def _find(self, column: str, value: str) -> List[Record]:
        with self._lock:
            return [
                copy.deepcopy(r) for r in self._records
                if isinstance(r, dict) and r.get(column) == value
            ]
