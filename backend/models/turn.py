"""Turn data models and the typed generation payloads."""
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


class Role(str, Enum):
    """Participant role of a turn."""
    USER = "user"
    ASSISTANT = "assistant"


class TurnDecodeError(ValueError):
    """Raised when a stored record cannot be parsed into a Turn."""


@dataclass
class Turn:
    """Represents a single persisted message in a conversation."""
    chat_id: str
    role: Role
    content: str
    timestamp: datetime
    user_id: str = ""
    image: str = ""
    image_name: str = ""

    def to_record(self) -> Dict[str, Any]:
        """Render the turn in the persisted record layout."""
        return {
            "chat_id": self.chat_id,
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
            "image": self.image,
            "image_name": self.image_name,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Turn":
        """
        Parse a stored record into a Turn.

        Args:
            record: Row as returned by the record store

        Returns:
            Turn instance

        Raises:
            TurnDecodeError: If a required field is missing or invalid
        """
        if not isinstance(record, dict):
            raise TurnDecodeError(f"record is not a mapping: {type(record).__name__}")

        chat_id = record.get("chat_id")
        if not isinstance(chat_id, str) or not chat_id:
            raise TurnDecodeError("record has no chat_id")

        try:
            role = Role(record.get("role"))
        except ValueError:
            raise TurnDecodeError(f"record has invalid role: {record.get('role')!r}")

        content = _optional_field(record, "content")

        raw_timestamp = record.get("timestamp")
        if isinstance(raw_timestamp, datetime):
            timestamp = _ensure_utc(raw_timestamp)
        elif isinstance(raw_timestamp, str) and raw_timestamp:
            try:
                timestamp = parse_timestamp(raw_timestamp)
            except ValueError as e:
                raise TurnDecodeError(f"record has invalid timestamp: {e}")
        else:
            raise TurnDecodeError("record has no timestamp")

        return cls(
            chat_id=chat_id,
            role=role,
            content=content,
            timestamp=timestamp,
            user_id=_optional_field(record, "user_id"),
            image=_optional_field(record, "image"),
            image_name=_optional_field(record, "image_name"),
        )


@dataclass
class IncomingTurn:
    """A chat request as received from the caller; never persisted directly."""
    chat_id: str
    content: str
    user_id: str = ""
    image: str = ""
    image_name: str = ""
    object: str = ""


@dataclass
class GenerationRequest:
    """Outbound payload for the generation service."""
    prompt: str
    chat_id: str
    object: str = ""
    user_id: str = ""
    image: str = ""

    def to_payload(self) -> Dict[str, Any]:
        payload = {
            "prompt": self.prompt,
            "object": self.object,
            "chat_id": self.chat_id,
            "user_id": self.user_id,
        }
        if self.image:
            payload["image"] = self.image
        return payload


@dataclass
class GenerationResponse:
    """Reply returned by the generation service."""
    message: str
    image: str = ""
    image_name: str = ""


@dataclass
class InpaintJob:
    """Image edit request forwarded to the image generation service."""
    chat_id: str
    image: str
    user_id: str = ""
    mask: str = ""
    prompt: str = ""
    image_name: str = ""

    def to_payload(self) -> Dict[str, Any]:
        return {
            "chat_id": self.chat_id,
            "user_id": self.user_id,
            "image": self.image,
            "mask": self.mask,
            "prompt": self.prompt,
            "image_name": self.image_name,
        }


@dataclass
class InpaintResult:
    """Edited image returned by the image generation service."""
    image: str
    image_name: str = ""


@dataclass
class AssembledHistory:
    """Ordered history of a conversation plus the context resolved from it."""
    history: List[Turn]
    image: str = ""
    subject: str = ""


@dataclass
class TurnOutcome:
    """Result of one reconciled chat turn."""
    user_turn: Turn
    assistant_turn: Turn
    persisted: bool


@dataclass
class TurnBatch:
    """Turns read for display, with the number of records that failed to decode."""
    turns: List[Turn] = field(default_factory=list)
    skipped: int = 0


class TurnClock:
    """
    Server-side timestamp source for new turns.

    Never returns a value less than or equal to the previous one, so turns created
    in the same process order totally even when the wall clock is coarse or steps back.
    """

    _TICK = timedelta(microseconds=1)

    def __init__(self, now: Optional[Callable[[], datetime]] = None):
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._last: Optional[datetime] = None
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            current = _ensure_utc(self._now())
            if self._last is not None and current <= self._last:
                current = self._last + self._TICK
            self._last = current
            return current


def parse_timestamp(timestamp_str: str) -> datetime:
    """
    Parse timestamp string from the record store, handling various formats.

    PostgREST returns timestamps with varying microsecond precision,
    which Python's fromisoformat() can't always handle. This method
    normalizes the timestamp format.

    Args:
        timestamp_str: ISO-8601 timestamp string

    Returns:
        Timezone-aware datetime (naive values are taken as UTC)
    """
    # Replace 'Z' with '+00:00' for timezone
    timestamp_str = timestamp_str.strip().replace("Z", "+00:00")

    # Format: 2026-02-21T02:08:26.18976+00:00
    if "." in timestamp_str:
        head, fraction = timestamp_str.split(".", 1)
        tz = ""
        for sign in ("+", "-"):
            if sign in fraction:
                fraction, tz_rest = fraction.split(sign, 1)
                tz = sign + tz_rest
                break
        # Truncate or pad microseconds to 6 digits
        fraction = fraction[:6].ljust(6, '0')
        timestamp_str = f"{head}.{fraction}{tz}"

    return _ensure_utc(datetime.fromisoformat(timestamp_str))


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _optional_field(record: Dict[str, Any], key: str) -> str:
    value = record.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise TurnDecodeError(f"record {key} is not a string: {type(value).__name__}")
    return value
