from typing import Any

from kafka_datasource.klogger import get_custom_logger
from kafka_datasource.models.kmodels import ConsumedMessage, encode_delimiter
from kafka_datasource.models.ktypes import Delimiter

logger = get_custom_logger()


class MessageBuffer:
    """Growing byte buffer of delimiter-terminated message payloads, in the order they were added."""

    def __init__(self, delimiter: Delimiter = b"\n"):
        self._delimiter = encode_delimiter(delimiter)
        self._data = bytearray()
        self._count = 0

    def add(self, payload: bytes) -> None:
        self._data += payload
        self._data += self._delimiter
        self._count += 1

    def add_message(self, message: ConsumedMessage) -> bool:
        """Appends the message payload if it was consumed without error. Returns whether it was appended."""
        if not message.ok:
            return False
        self.add(message.payload)
        return True

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def count(self) -> int:
        return self._count

    def __len__(self) -> int:
        return len(self._data)

    def getvalue(self) -> bytes:
        return bytes(self._data)


def read_until(consumer: Any, min_size_bytes: int, poll_timeout_ms: int) -> bytes:
    """
    Polls messages until at least `min_size_bytes` of newline-terminated payloads were collected.

    Every poll gets the same fixed timeout and there is no overall deadline: the call returns only once enough data
    arrived. Polls that time out or carry an error are skipped.

    :param consumer: Assigned or subscribed confluent_kafka.Consumer.
    :param min_size_bytes: Buffer size to reach before returning.
    :param poll_timeout_ms: Timeout of every single poll.
    :returns: Collected payloads, each followed by a newline.
    """
    buffer = MessageBuffer(b"\n")
    while buffer.size < min_size_bytes:
        message = ConsumedMessage.from_poll(consumer.poll(poll_timeout_ms / 1000))
        if not buffer.add_message(message) and message.reason:
            logger.debug("Skipping message: %s (%s)", message.error, message.reason)

    logger.debug("Read %d messages, %d bytes", buffer.count, buffer.size)
    return buffer.getvalue()
