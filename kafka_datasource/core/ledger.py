from typing import Any

import confluent_kafka

from kafka_datasource.exceptions import KafkaCommitException
from kafka_datasource.klogger import get_custom_logger
from kafka_datasource.models.kmodels import OFFSET_UNKNOWN, make_topic_partition

logger = get_custom_logger()


class OffsetLedger:
    """Reads and synchronously commits the consumer group's offset for a single topic-partition."""

    def __init__(self, consumer: Any, strict: bool = False):
        self._consumer = consumer
        self._strict = strict

    def committed(self, topic: str, partition: int, timeout_ms: int) -> int:
        """
        Retrieve the committed offset of `topic[partition]` for the consumer's group.

        :param topic: Topic name.
        :param partition: Partition number.
        :param timeout_ms: Round trip budget.
        :returns: Committed offset or OFFSET_UNKNOWN if the group never committed for this partition.
        """
        # Always a single-element request
        toppars = self._consumer.committed([make_topic_partition(topic, partition)], timeout=timeout_ms / 1000)
        if not toppars:
            return OFFSET_UNKNOWN

        toppar = toppars[0]
        if toppar.error is not None:
            logger.warning("Committed offset for %s[%d] unavailable: %s", topic, partition, toppar.error)
            return OFFSET_UNKNOWN
        return toppar.offset

    def commit(self, topic: str, partition: int, offset: int) -> bool:
        """
        Synchronously commit `offset` for `topic[partition]`. Does not return before the broker acknowledged it.

        :param topic: Topic name.
        :param partition: Partition number.
        :param offset: Offset to commit (the next offset to be consumed).
        :returns: False if the topic-partition could not be built from the arguments, True otherwise.
        :raises KafkaCommitException: if the ledger is strict and the broker reported a commit error
        """
        try:
            toppar = make_topic_partition(topic, partition, offset)
        except (TypeError, ValueError) as exc:
            logger.error("Cannot commit offset %r for %r[%r]: %s", offset, topic, partition, exc)
            return False

        try:
            results = self._consumer.commit(offsets=[toppar], asynchronous=False)
        except confluent_kafka.KafkaException as exc:
            self._on_commit_error(topic, partition, offset, str(exc))
            return True

        for result in results or []:
            if result.error is not None:
                self._on_commit_error(topic, partition, offset, str(result.error))

        logger.debug("Committed offset %d for %s[%d]", offset, topic, partition)
        return True

    def _on_commit_error(self, topic: str, partition: int, offset: int, reason: str) -> None:
        if self._strict:
            raise KafkaCommitException(f"Commit of offset {offset} for {topic}[{partition}] failed: {reason}")
        logger.warning("Commit of offset %d for %s[%d] reported: %s", offset, topic, partition, reason)
