from typing import Any, Optional

import confluent_kafka

from kafka_datasource.exceptions import KafkaBrokerException
from kafka_datasource.klogger import get_custom_logger
from kafka_datasource.models.kmodels import OFFSET_UNKNOWN, WatermarkPair, make_topic_partition

logger = get_custom_logger()


def classify_watermark_error(err: confluent_kafka.KafkaError) -> bool:
    """
    Decides whether a watermark query error still carries a usable result.

    The client reports an exhausted partition as `_PARTITION_EOF` even though low/high are valid, so that code is
    benign. Every other code is a genuine fault.

    :returns: True for the benign end-of-partition signal, False otherwise.
    """
    return err.code() == confluent_kafka.KafkaError._PARTITION_EOF


def _is_known(result: Optional[tuple[int, int]]) -> bool:
    return result is not None and OFFSET_UNKNOWN not in result


class WatermarkOracle:
    """Answers low/high watermark queries, either from the client's cached view or with a broker round trip."""

    def __init__(self, consumer: Any):
        self._consumer = consumer

    def watermarks(self, topic: str, partition: int, timeout_ms: int, cached: bool = False) -> WatermarkPair:
        """
        Retrieve low and high offsets for `topic[partition]`.

        :param topic: Topic name.
        :param partition: Partition number.
        :param timeout_ms: Round trip budget for the live query, ignored when `cached` is set.
        :param cached: Return the last known values without contacting the broker.
        :returns: WatermarkPair(low, high)
        :raises KafkaBrokerException: on any broker error other than end-of-partition, on timeout, or when an
            end-of-partition answer leaves no valid pair behind
        """
        toppar = make_topic_partition(topic, partition)
        if cached:
            result = self._consumer.get_watermark_offsets(toppar, cached=True)
        else:
            result = self._query(toppar, timeout_ms)

        if result is None:
            raise KafkaBrokerException(
                f"Timed out after {timeout_ms}ms querying watermark offsets for {topic}[{partition}]",
                confluent_kafka.KafkaError._TIMED_OUT,
            )

        low, high = result
        logger.debug("Watermarks for %s[%d] (cached=%s): low=%d, high=%d", topic, partition, cached, low, high)
        return WatermarkPair(low, high)

    def _query(self, toppar: confluent_kafka.TopicPartition, timeout_ms: int) -> Optional[tuple[int, int]]:
        """
        Live query. On end-of-partition the pair comes from the client's fetch state if it holds one, otherwise the
        query is issued once more.
        """
        eof: Optional[confluent_kafka.KafkaError] = None
        for _ in range(2):
            try:
                return self._consumer.get_watermark_offsets(toppar, timeout=timeout_ms / 1000, cached=False)
            except confluent_kafka.KafkaException as exc:
                err = exc.args[0] if exc.args else None
                if not isinstance(err, confluent_kafka.KafkaError):
                    raise KafkaBrokerException(str(exc)) from exc
                if not classify_watermark_error(err):
                    raise KafkaBrokerException(err.str(), err.code()) from exc
                eof = err

            # Cached values are only filled by fetch responses, a consumer that never fetched has none
            result = self._consumer.get_watermark_offsets(toppar, cached=True)
            if _is_known(result):
                logger.debug(
                    "End of partition reached for %s[%d], using fetched watermarks", toppar.topic, toppar.partition
                )
                return result
            logger.debug("End of partition reached for %s[%d] without known watermarks", toppar.topic, toppar.partition)

        raise KafkaBrokerException(
            f"No valid watermark offsets for {toppar.topic}[{toppar.partition}]: {eof.str()}", eof.code()
        )
