import confluent_kafka
import pytest

from kafka_datasource.core.ledger import OffsetLedger
from kafka_datasource.exceptions import KafkaCommitException
from kafka_datasource.models.kmodels import OFFSET_UNKNOWN
from tests.doubles import FakeConsumer


@pytest.fixture
def fake() -> FakeConsumer:
    return FakeConsumer({"group.id": "test-group"})


def test_committed_unknown_before_first_commit(fake) -> None:
    assert OffsetLedger(fake).committed("test-topic", 0, 1000) == OFFSET_UNKNOWN


def test_commit_then_committed(fake) -> None:
    """A committed offset is read back for the same topic, partition and group."""
    ledger = OffsetLedger(fake)

    assert ledger.commit("test-topic", 1, 42) is True
    assert ledger.committed("test-topic", 1, 1000) == 42
    assert ledger.committed("test-topic", 0, 1000) == OFFSET_UNKNOWN


def test_commit_is_synchronous_single_partition(fake) -> None:
    OffsetLedger(fake).commit("test-topic", 0, 7)

    (call,) = fake.commit_calls
    assert call["asynchronous"] is False
    (toppar,) = call["offsets"]
    assert (toppar.topic, toppar.partition, toppar.offset) == ("test-topic", 0, 7)


@pytest.mark.parametrize("topic, partition, offset", [("", 0, 1), ("test-topic", -1, 1), ("test-topic", 0, "1")])
def test_commit_malformed_input(fake, topic, partition, offset) -> None:
    assert OffsetLedger(fake).commit(topic, partition, offset) is False
    assert fake.commit_calls == []


def test_commit_broker_error_is_reported_not_raised(fake, caplog) -> None:
    fake.commit_error = confluent_kafka.KafkaError(confluent_kafka.KafkaError.REBALANCE_IN_PROGRESS, "rebalancing")

    with caplog.at_level("WARNING", logger="kafka_datasource"):
        assert OffsetLedger(fake).commit("test-topic", 0, 7) is True

    assert "rebalancing" in caplog.text


def test_commit_broker_error_strict(fake) -> None:
    fake.commit_error = confluent_kafka.KafkaError(confluent_kafka.KafkaError.REBALANCE_IN_PROGRESS, "rebalancing")

    with pytest.raises(KafkaCommitException) as exc:
        OffsetLedger(fake, strict=True).commit("test-topic", 0, 7)

    assert "rebalancing" in str(exc.value)


def test_committed_partition_error(fake) -> None:
    fake.committed_error = "Broker: Coordinator not available"

    assert OffsetLedger(fake).committed("test-topic", 0, 1000) == OFFSET_UNKNOWN
