import pytest

from kafka_datasource.exceptions import KafkaConfigException
from kafka_datasource.utils import consumer_config_schema, parse_loglevel, rejected_property, resolve_config

BASE_CONFIG = {"bootstrap.servers": "localhost:9092", "group.id": "test-group"}


def test_resolve_valid_config() -> None:
    """Valid string-valued entries are kept and typed where the schema knows the property."""
    resolved = resolve_config(
        {
            **BASE_CONFIG,
            "enable.auto.commit": "false",
            "session.timeout.ms": "6000",
            "auto.offset.reset": "earliest",
        }
    )

    assert resolved.warnings == []
    assert resolved.config == {
        "bootstrap.servers": "localhost:9092",
        "group.id": "test-group",
        "enable.auto.commit": False,
        "session.timeout.ms": 6000,
        "auto.offset.reset": "earliest",
    }


@pytest.mark.parametrize(
    "key, value",
    [
        ("enable.auto.commit", "maybe"),
        ("session.timeout.ms", "soon"),
        ("session.timeout.ms", "0"),
        ("auto.offset.reset", "whenever"),
        ("error_cb", "not-callable"),
    ],
)
def test_resolve_drops_malformed_values(key: str, value: str) -> None:
    """Malformed values are dropped with a warning, never raised."""
    resolved = resolve_config({**BASE_CONFIG, key: value})

    assert key not in resolved.config
    assert len(resolved.warnings) == 1
    assert key in resolved.warnings[0]


def test_resolve_passes_unknown_keys_through() -> None:
    """Properties unknown to the local schema are left for the client library to judge."""
    resolved = resolve_config({**BASE_CONFIG, "topic.metadata.refresh.interval.ms": "1000"})

    assert resolved.config["topic.metadata.refresh.interval.ms"] == "1000"
    assert resolved.warnings == []


def test_resolve_drops_unusable_entries() -> None:
    resolved = resolve_config({**BASE_CONFIG, "client.rack": None, "log_cb": print, "": "x"})

    assert set(resolved.config) == {"bootstrap.servers", "group.id"}
    assert len(resolved.warnings) == 3


def test_missing_group_id_is_a_warning() -> None:
    resolved = resolve_config({"bootstrap.servers": "localhost:9092"})

    assert "group.id" not in resolved.config
    assert any("group.id" in warning for warning in resolved.warnings)


def test_missing_group_id_strict() -> None:
    with pytest.raises(KafkaConfigException) as exc:
        resolve_config({"bootstrap.servers": "localhost:9092"}, require_group_id=True)

    assert "group.id is required" in str(exc.value)


def test_resolve_does_not_mutate_input() -> None:
    config = {**BASE_CONFIG, "enable.auto.commit": "true"}
    resolve_config(config)

    assert config["enable.auto.commit"] == "true"


def test_schema_entries_are_well_formed() -> None:
    for key, rules in consumer_config_schema.items():
        assert "type" in rules, key
        if "range" in rules:
            low, high = rules["range"]
            assert low <= high, key


def test_rejected_property() -> None:
    config = {"foo.bar": "1", "session.timeout.ms": "x"}

    assert rejected_property('No such configuration property: "foo.bar"', config) == "foo.bar"
    assert (
        rejected_property('Invalid value "x" for configuration property "session.timeout.ms"', config)
        == "session.timeout.ms"
    )
    assert rejected_property('No such configuration property: "other"', config) is None
    assert rejected_property(None, config) is None


@pytest.mark.parametrize(
    "value, expected", [(None, "WARNING"), ("", "WARNING"), ("debug", "DEBUG"), (" Error ", "ERROR"), ("loud", "WARNING")]
)
def test_parse_loglevel(value, expected) -> None:
    assert parse_loglevel(value) == expected


def test_docstring_examples() -> None:
    import doctest

    import kafka_datasource.utils

    failures, _ = doctest.testmod(kafka_datasource.utils)
    assert failures == 0
