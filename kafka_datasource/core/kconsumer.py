import os
from collections.abc import Mapping
from typing import Any, Optional

import confluent_kafka

from kafka_datasource.core.assignment import AssignmentManager
from kafka_datasource.core.batch import consume_range
from kafka_datasource.core.ledger import OffsetLedger
from kafka_datasource.core.message_buffer import read_until
from kafka_datasource.core.watermarks import WatermarkOracle
from kafka_datasource.exceptions import KafkaClosedException, KafkaConfigException
from kafka_datasource.klogger import get_custom_logger
from kafka_datasource.models.kmodels import BatchWindow
from kafka_datasource.models.ktypes import Delimiter, LogLevelType, WatermarkDict
from kafka_datasource.utils import parse_loglevel, rejected_property, resolve_config

try:
    DEFAULT_TIMEOUT_MS = int(os.environ.get("KAFKA_DATASOURCE_DEFAULT_TIMEOUT_MS", 10000))
    LOGLEVEL = parse_loglevel(os.environ.get("KAFKA_DATASOURCE_LOGLEVEL"))
except ValueError as err:
    raise KafkaConfigException(f"Invalid Kafka Datasource environment variable: {err}") from None


class KafkaDatasource:
    """
    Batch-oriented reader on top of confluent_kafka.Consumer.

    It turns the poll-based consumer into bounded reads of an offset window (`consume_range`) or of a minimum number
    of bytes (`read_until`), and exposes the offset management needed to pick the windows: watermarks, committed
    offsets and synchronous commits. A handle must only be used from one thread at a time.
    """

    def __init__(
        self,
        config: Mapping[str, Any],
        loglevel: Optional[LogLevelType] = None,
        default_timeout_ms: Optional[int] = None,
        strict_commit: bool = False,
    ):
        self.logger = get_custom_logger(loglevel or LOGLEVEL)
        self.default_timeout_ms = DEFAULT_TIMEOUT_MS if default_timeout_ms is None else default_timeout_ms

        resolved = resolve_config(config)
        self.config = resolved.config
        self.config_warnings: list[str] = list(resolved.warnings)
        self._consumer: Any = None
        self._closed = False
        self._deferred_error: Optional[KafkaConfigException] = None
        self._assignment: Optional[AssignmentManager] = None
        self._watermarks: Optional[WatermarkOracle] = None
        self._ledger: Optional[OffsetLedger] = None

        try:
            self._consumer = self._create_consumer()
        except KafkaConfigException as exc:
            if self.config.get("group.id"):
                raise
            # Without group.id the client refuses to build a consumer. The handle still exists and every operation
            # reports the defect.
            self._deferred_error = exc
        for warning in self.config_warnings:
            self.logger.warning(warning)

        if self._consumer is not None:
            self._assignment = AssignmentManager(self._consumer)
            self._watermarks = WatermarkOracle(self._consumer)
            self._ledger = OffsetLedger(self._consumer, strict=strict_commit)
            self.logger.info("KafkaDatasource initialized, id: %s, group: %s", id(self), self.config.get("group.id"))
        else:
            self.logger.error("KafkaDatasource created without a consumer, id: %s: %s", id(self), self._deferred_error)

    def _create_consumer(self) -> Any:
        """
        Create the underlying consumer. Properties the client library rejects are dropped with a warning and the
        creation is retried, so a stray option never prevents the handle from being built.

        :raises KafkaConfigException: if the client library refuses the configuration for any other reason
        """
        while True:
            try:
                return confluent_kafka.Consumer(self.config)
            except confluent_kafka.KafkaException as exc:
                err = exc.args[0] if exc.args else None
                reason = err.str() if isinstance(err, confluent_kafka.KafkaError) else str(exc)
                key = rejected_property(reason, self.config)
                if key is None:
                    raise KafkaConfigException(f"Unable to create Kafka Consumer: {reason}") from exc
                self.config.pop(key)
                self.config_warnings.append(f"Ignoring configuration parameter {key}: {reason}")
            except (ValueError, TypeError) as exc:
                raise KafkaConfigException(f"Unable to create Kafka Consumer: {exc}") from exc

    @property
    def closed(self) -> bool:
        return self._closed

    def _require_open(self) -> Any:
        if self._closed:
            raise KafkaClosedException("KafkaDatasource is closed")
        if self._deferred_error is not None:
            raise KafkaConfigException(str(self._deferred_error))
        return self._consumer

    def consume_range(
        self,
        topic: str,
        partition: int,
        start_offset: int,
        end_offset: int,
        timeout_ms: int,
        delimiter: Delimiter = "\n",
    ) -> bytes:
        """
        Read messages `[start_offset, end_offset)` of `topic[partition]` as one delimiter-framed buffer.

        :param topic: Topic to read.
        :param partition: Partition to read.
        :param start_offset: First offset of the window.
        :param end_offset: Offset one past the last message of the window.
        :param timeout_ms: Total time budget. Once spent, whatever was read so far is returned.
        :param delimiter: Terminator appended after every payload.
        :returns: Payloads followed by the delimiter, possibly fewer than requested.
        """
        consumer = self._require_open()
        window = BatchWindow(topic, partition, start_offset, end_offset)
        return consume_range(consumer, self._assignment, window, timeout_ms, delimiter)

    def read_until(self, min_size_bytes: int) -> bytes:
        """
        Read newline-terminated payloads from the current assignment until at least `min_size_bytes` are buffered.
        Every poll uses the default timeout, the call itself has no deadline.
        """
        consumer = self._require_open()
        return read_until(consumer, min_size_bytes, self.default_timeout_ms)

    def host_read(self, offset: int, size: int) -> bytes:
        """Datasource style read. The consumer position decides what is read, `offset` is not used."""
        return self.read_until(size)

    def get_committed_offset(self, topic: str, partition: int, timeout_ms: Optional[int] = None) -> int:
        """Committed offset of the group for `topic[partition]`, or OFFSET_UNKNOWN."""
        self._require_open()
        return self._ledger.committed(topic, partition, self._timeout(timeout_ms))

    def get_watermark_offsets(
        self, topic: str, partition: int, timeout_ms: Optional[int] = None, cached: bool = False
    ) -> WatermarkDict:
        """
        Low and high watermarks of `topic[partition]`.

        :param topic: Topic name.
        :param partition: Partition number.
        :param timeout_ms: Budget of the live query.
        :param cached: Use the client's last known values instead of asking the broker.
        :returns: {"low": ..., "high": ...}
        :raises KafkaBrokerException: if the broker reports an error
        """
        self._require_open()
        return self._watermarks.watermarks(topic, partition, self._timeout(timeout_ms), cached).as_dict()

    def commit_offset(self, topic: str, partition: int, offset: int) -> bool:
        """Synchronously commit `offset` for `topic[partition]`."""
        self._require_open()
        return self._ledger.commit(topic, partition, offset)

    def unsubscribe(self) -> bool:
        """Drop the current partition assignment. Returns False (and logs) if the client reported an error."""
        self._require_open()
        return self._assignment.unassign()

    def assignment(self) -> list[confluent_kafka.TopicPartition]:
        return self._assignment.assignment() if self._assignment is not None else []

    def close(self, timeout_ms: Optional[int] = None) -> bool:
        """
        Close down the underlying consumer. The consumer is released exactly once, whatever the outcome; later calls
        are no-ops.

        :param timeout_ms: Accepted for interface compatibility, confluent_kafka's close blocks until it is done.
        :returns: False if closing reported an error, True otherwise.
        """
        if self._closed:
            return True

        self._closed = True
        consumer, self._consumer = self._consumer, None
        if consumer is None:
            return True
        try:
            consumer.close()
        except (confluent_kafka.KafkaException, RuntimeError) as exc:
            self.logger.error("Timeout occurred while closing Kafka Consumer: %s", exc)
            return False

        self.logger.info("KafkaDatasource closed, id: %s, group: %s", id(self), self.config.get("group.id"))
        return True

    def _timeout(self, timeout_ms: Optional[int]) -> int:
        return self.default_timeout_ms if timeout_ms is None else timeout_ms

    def __enter__(self) -> "KafkaDatasource":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __del__(self):
        if getattr(self, "_consumer", None) is not None:  # if __init__ got as far as creating the consumer
            try:
                self.close()
            except Exception as e:
                self.logger.error("Error during KafkaDatasource destruction: %s", e)
