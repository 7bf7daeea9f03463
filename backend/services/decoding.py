"""Decoding of stored records into Turns under an explicit bad-record policy."""
import logging
from enum import Enum
from typing import Any, Dict, Iterable, Union

from models.turn import Turn, TurnBatch, TurnDecodeError
from services.errors import DecodeFailed

logger = logging.getLogger(__name__)


class DecodePolicy(str, Enum):
    """What to do with a stored record that does not parse into a Turn."""
    SKIP = "skip"
    FAIL = "fail"

    @classmethod
    def parse(cls, value: Union[str, "DecodePolicy"]) -> "DecodePolicy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown decode policy: {value!r} (expected 'skip' or 'fail')")


def decode_turns(
    records: Iterable[Dict[str, Any]],
    policy: DecodePolicy,
    source: str = ""
) -> TurnBatch:
    """
    Parse store records into Turns, keeping their order.

    Args:
        records: Raw records from the record store
        policy: SKIP drops and counts bad records, FAIL aborts on the first one
        source: Label for log messages, e.g. "chat_id=c1"

    Returns:
        TurnBatch with the decoded turns and the number of skipped records

    Raises:
        DecodeFailed: Under the FAIL policy, for the first bad record
    """
    batch = TurnBatch()
    for index, record in enumerate(records):
        try:
            batch.turns.append(Turn.from_record(record))
        except TurnDecodeError as e:
            if policy is DecodePolicy.FAIL:
                logger.error(f"Failed to decode record {index} ({source}): {e}")
                raise DecodeFailed(
                    f"Stored record could not be decoded: {e}",
                    {"index": index, "source": source}
                )
            batch.skipped += 1
            logger.warning(f"Skipping undecodable record {index} ({source}): {e}")

    if batch.skipped:
        logger.warning(
            f"Skipped {batch.skipped} undecodable records ({source})",
            extra={"fields": {"skipped": batch.skipped, "source": source}}
        )
    return batch
