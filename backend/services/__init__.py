"""Services for ChatRelay backend."""
from .errors import (
    ServiceError,
    ChatServiceError,
    BadRequest,
    StoreUnavailable,
    PersistenceFailed,
    DecodeFailed,
    GenerationUnavailable,
    GenerationTimeout,
    GenerationResponseInvalid,
    AuthExchangeFailed,
    AuthUnavailable,
    ConversationBusy,
)
from .record_store import RecordStore, SupabaseRecordStore, InMemoryRecordStore
from .decoding import DecodePolicy, decode_turns
from .history_assembler import HistoryAssembler
from .prompt_composer import PromptComposer
from .generation_client import GenerationClient
from .turn_reconciler import TurnReconciler
from .history_query import HistoryQuery
from .chat_orchestrator import ChatOrchestrator, ConversationLocks
from .auth_client import GoogleAuthClient

__all__ = ['ServiceError', 'ChatServiceError', 'BadRequest', 'StoreUnavailable', 'PersistenceFailed', 'DecodeFailed', 'GenerationUnavailable', 'GenerationTimeout', 'GenerationResponseInvalid', 'AuthExchangeFailed', 'AuthUnavailable', 'ConversationBusy', 'RecordStore', 'SupabaseRecordStore', 'InMemoryRecordStore', 'DecodePolicy', 'decode_turns', 'HistoryAssembler', 'PromptComposer', 'GenerationClient', 'TurnReconciler', 'HistoryQuery', 'ChatOrchestrator', 'ConversationLocks', 'GoogleAuthClient']
