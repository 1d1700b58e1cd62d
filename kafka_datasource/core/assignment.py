from typing import Any, Optional

import confluent_kafka

from kafka_datasource.klogger import get_custom_logger
from kafka_datasource.models.kmodels import make_topic_partition

logger = get_custom_logger()


class AssignmentManager:
    """
    Keeps the consumer bound to exactly one topic-partition at a fetch position. Every `assign` replaces the previous
    assignment, it never adds to it.
    """

    def __init__(self, consumer: Any):
        self._consumer = consumer
        self._assignment: Optional[confluent_kafka.TopicPartition] = None

    def assign(self, topic: str, partition: int, start_offset: int) -> confluent_kafka.TopicPartition:
        """
        Rebind the consumer to `topic[partition]` and set its fetch position to `start_offset`.

        :param topic: Topic to consume from.
        :param partition: Partition to consume from.
        :param start_offset: First offset the next poll should return.
        :returns: The TopicPartition the consumer is now assigned to.
        :raises KafkaException: if the client refuses the assignment
        """
        toppar = make_topic_partition(topic, partition, start_offset)
        self._consumer.assign([toppar])
        self._assignment = toppar
        logger.debug("Assigned %s[%d] at offset %d", topic, partition, start_offset)
        return toppar

    def unassign(self) -> bool:
        """
        Removes the current assignment. A failure (usually a timeout) is reported through the return value and logged.

        :returns: True on success, False if the client reported an error.
        """
        try:
            self._consumer.unassign()
        except confluent_kafka.KafkaException as exc:
            logger.error("Timeout occurred while unsubscribing from Kafka Consumer assignments: %s", exc)
            return False

        self._assignment = None
        logger.debug("Unassigned all partitions")
        return True

    def assignment(self) -> list[confluent_kafka.TopicPartition]:
        """Returns the current assignment (at most one partition)."""
        return [self._assignment] if self._assignment is not None else []
