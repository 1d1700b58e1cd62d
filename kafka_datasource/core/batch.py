from typing import Any

from kafka_datasource.core.assignment import AssignmentManager
from kafka_datasource.core.message_buffer import MessageBuffer
from kafka_datasource.klogger import get_custom_logger
from kafka_datasource.models.kmodels import BatchWindow, ConsumedMessage, TimeBudget
from kafka_datasource.models.ktypes import Delimiter

logger = get_custom_logger()


def consume_range(
    consumer: Any,
    assignment: AssignmentManager,
    window: BatchWindow,
    timeout_ms: int,
    delimiter: Delimiter = "\n",
) -> bytes:
    """
    Reads every message of `window` into one delimiter-framed buffer, unless `timeout_ms` runs out first.

    Each poll is bounded by the time left until the absolute deadline. The deadline is checked after every poll, so
    the call may overrun it by at most one poll. Running out of time is not an error: the buffer then simply holds
    fewer than `window.target_count` messages.

    :param consumer: confluent_kafka.Consumer (or compatible) owned by the caller.
    :param assignment: Assignment manager bound to the same consumer, used to seek to the window start.
    :param window: Half-open offset window to read.
    :param timeout_ms: Total time budget of the call.
    :param delimiter: Terminator appended after every payload.
    :returns: Concatenated `payload + delimiter` for every consumed message, in broker order.
    """
    buffer = MessageBuffer(delimiter)
    target_count = window.target_count
    budget = TimeBudget.start(timeout_ms)

    if target_count == 0:
        logger.debug("Empty window %s, nothing to consume", window)
        return buffer.getvalue()

    assignment.assign(window.topic, window.partition, window.start_offset)

    skipped = 0
    while buffer.count < target_count:
        message = ConsumedMessage.from_poll(consumer.poll(budget.remaining_seconds()))
        if not buffer.add_message(message):
            skipped += 1

        if budget.expired():
            break

    if buffer.count < target_count:
        logger.info(
            "Timed out reading %s[%d]: %d of %d messages after %.0fms",
            window.topic,
            window.partition,
            buffer.count,
            target_count,
            budget.elapsed_ms(),
        )
    logger.debug(
        "consume_range %s[%d] [%d, %d): read=%d, skipped polls=%d, bytes=%d",
        window.topic,
        window.partition,
        window.start_offset,
        window.end_offset,
        buffer.count,
        skipped,
        buffer.size,
    )
    return buffer.getvalue()
