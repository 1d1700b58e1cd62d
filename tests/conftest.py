import logging
from unittest.mock import patch

from pytest import fixture

from kafka_datasource.core.kconsumer import KafkaDatasource
from tests.doubles import FakeClock, FakeConsumer


@fixture
def foo_log_record() -> logging.LogRecord:
    return logging.LogRecord("kafka_datasource", logging.INFO, "kconsumer.py", 1, "foo", None, None)


@fixture
def clock(monkeypatch) -> FakeClock:
    """Replaces the monotonic clock behind TimeBudget."""
    _clock = FakeClock()
    monkeypatch.setattr("kafka_datasource.models.kmodels.monotonic", _clock)
    return _clock


@fixture
def fake_consumer_cls(clock):
    """Yields the FakeConsumer class patched in place of confluent_kafka.Consumer, bound to the fake clock."""
    instances: list[FakeConsumer] = []

    def _factory(config):
        consumer = FakeConsumer(config, clock)
        instances.append(consumer)
        return consumer

    _factory.instances = instances
    with patch("confluent_kafka.Consumer", new=_factory):
        yield _factory


@fixture
def datasource(fake_consumer_cls) -> KafkaDatasource:
    """Returns KafkaDatasource backed by a FakeConsumer (available as `datasource._consumer`)."""
    ds = KafkaDatasource(
        {"bootstrap.servers": "localhost:9092", "group.id": "test-group"}, loglevel="DEBUG", default_timeout_ms=100
    )
    yield ds
    ds.close()


@fixture
def consumer(datasource) -> FakeConsumer:
    return datasource._consumer
