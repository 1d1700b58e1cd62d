from dataclasses import dataclass
from enum import Enum, auto
from time import monotonic
from typing import Any, NamedTuple, Optional

import confluent_kafka

from kafka_datasource.models.ktypes import Delimiter, WatermarkDict

OFFSET_UNKNOWN = confluent_kafka.OFFSET_INVALID


def make_topic_partition(topic: str, partition: int, offset: Optional[int] = None) -> confluent_kafka.TopicPartition:
    """
    Build a fresh confluent_kafka.TopicPartition for a single collaborator call.

    :param topic: Topic name, must be a non-empty string.
    :param partition: Partition number, must be >= 0.
    :param offset: Optional offset attached to the partition.
    :raises TypeError: if any argument has the wrong type
    :raises ValueError: if the topic is empty or the partition is negative
    """
    if not isinstance(topic, str):
        raise TypeError("Topic must be a string")
    elif not topic:
        raise ValueError("Topic name cannot be empty")
    if not isinstance(partition, int) or isinstance(partition, bool):
        raise TypeError("Partition must be an integer")
    elif partition < 0:
        raise ValueError("Partition must be a non-negative integer")

    if offset is None:
        return confluent_kafka.TopicPartition(topic, partition)
    if not isinstance(offset, int) or isinstance(offset, bool):
        raise TypeError("Offset must be an integer")
    return confluent_kafka.TopicPartition(topic, partition, offset)


def encode_delimiter(delimiter: Delimiter) -> bytes:
    """Delimiters may be given as text (UTF-8 encoded) or raw bytes."""
    if isinstance(delimiter, str):
        return delimiter.encode("utf-8")
    elif isinstance(delimiter, (bytes, bytearray)):
        return bytes(delimiter)
    raise TypeError(f"Delimiter must be str or bytes, got {type(delimiter).__name__}")


class MessageError(Enum):
    """Outcome of a single poll, as seen by the accumulators."""

    def _generate_next_value_(name, start, count, last_values):
        return name.lower()

    NONE = auto()
    TIMEOUT = auto()
    PARTITION_EOF = auto()
    OTHER = auto()

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ConsumedMessage:
    """
    Payload copied out of a polled confluent_kafka.Message together with its classified error.
    The raw message object is never kept, only the bytes needed by the buffers.
    """

    payload: bytes = b""
    error: MessageError = MessageError.NONE
    reason: Optional[str] = None

    @classmethod
    def from_poll(cls, msg: Any) -> "ConsumedMessage":
        if msg is None:
            return cls(error=MessageError.TIMEOUT)

        err = msg.error()
        if err is not None:
            if err.code() == confluent_kafka.KafkaError._PARTITION_EOF:
                return cls(error=MessageError.PARTITION_EOF, reason=err.str())
            return cls(error=MessageError.OTHER, reason=err.str())

        value = msg.value()
        if value is None:
            payload = b""
        elif isinstance(value, str):
            payload = value.encode("utf-8")
        else:
            payload = bytes(value)
        return cls(payload=payload)

    @property
    def ok(self) -> bool:
        return self.error is MessageError.NONE


@dataclass(frozen=True)
class BatchWindow:
    """Half-open offset window [start_offset, end_offset) on one topic-partition."""

    topic: str
    partition: int
    start_offset: int
    end_offset: int

    @property
    def target_count(self) -> int:
        return max(0, self.end_offset - self.start_offset)

    def is_empty(self) -> bool:
        return self.target_count == 0


class TimeBudget:
    """
    Wall-clock budget anchored at an absolute monotonic deadline.
    Remaining time is always derived from the deadline, never by subtracting per-call durations.
    """

    def __init__(self, deadline: float, started: float):
        self.deadline = deadline
        self.started = started

    @classmethod
    def start(cls, total_ms: int | float) -> "TimeBudget":
        now = monotonic()
        return cls(now + max(total_ms, 0) / 1000, now)

    def remaining_ms(self) -> float:
        return (self.deadline - monotonic()) * 1000

    def remaining_seconds(self) -> float:
        """Poll bound for the next call, never negative."""
        return max(self.deadline - monotonic(), 0.0)

    def elapsed_ms(self) -> float:
        return (monotonic() - self.started) * 1000

    def expired(self) -> bool:
        return self.remaining_ms() <= 0

    def __repr__(self) -> str:
        return f"TimeBudget(remaining_ms={self.remaining_ms():.1f})"


class WatermarkPair(NamedTuple):
    low: int
    high: int

    def as_dict(self) -> WatermarkDict:
        return {"low": self.low, "high": self.high}
