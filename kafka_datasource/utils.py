import re
from collections.abc import Callable, Mapping
from typing import Any, NamedTuple, Optional

from kafka_datasource.exceptions import KafkaConfigException

# Properties checked locally before the config reaches librdkafka. Anything not listed here is handed to the
# client library as-is; librdkafka has the final say on those.
consumer_config_schema = {
    "bootstrap.servers": {"type": str, "allowed": None},
    "metadata.broker.list": {"type": str, "allowed": None},
    "client.id": {"type": str, "allowed": None},
    "group.id": {"type": str, "allowed": None},
    "group.instance.id": {"type": str, "allowed": None},
    "partition.assignment.strategy": {"type": str, "allowed": None},
    "session.timeout.ms": {"type": int, "range": (1, 3600000)},
    "heartbeat.interval.ms": {"type": int, "range": (1, 3600000)},
    "max.poll.interval.ms": {"type": int, "range": (1, 86400000)},
    "enable.auto.commit": {"type": bool, "allowed": [True, False]},
    "auto.commit.interval.ms": {"type": int, "range": (0, 86400000)},
    "enable.auto.offset.store": {"type": bool, "allowed": [True, False]},
    "auto.offset.reset": {
        "type": str,
        "allowed": ["smallest", "earliest", "beginning", "largest", "latest", "end", "error"],
    },
    "enable.partition.eof": {"type": bool, "allowed": [True, False]},
    "isolation.level": {"type": str, "allowed": ["read_uncommitted", "read_committed"]},
    "queued.min.messages": {"type": int, "range": (1, 10000000)},
    "queued.max.messages.kbytes": {"type": int, "range": (1, 2097151)},
    "fetch.wait.max.ms": {"type": int, "range": (0, 300000)},
    "fetch.min.bytes": {"type": int, "range": (1, 100000000)},
    "fetch.max.bytes": {"type": int, "range": (0, 2147483135)},
    "max.partition.fetch.bytes": {"type": int, "range": (1, 1000000000)},
    "fetch.error.backoff.ms": {"type": int, "range": (0, 300000)},
    "check.crcs": {"type": bool, "allowed": [True, False]},
    "socket.timeout.ms": {"type": int, "range": (10, 300000)},
    "socket.keepalive.enable": {"type": bool, "allowed": [True, False]},
    "reconnect.backoff.ms": {"type": int, "range": (0, 3600000)},
    "reconnect.backoff.max.ms": {"type": int, "range": (0, 3600000)},
    "statistics.interval.ms": {"type": int, "range": (0, 86400000)},
    "api.version.request": {"type": bool, "allowed": [True, False]},
    "debug": {"type": str, "allowed": None},
    "security.protocol": {
        "type": str,
        "allowed": ["plaintext", "ssl", "sasl_plaintext", "sasl_ssl", "PLAINTEXT", "SSL", "SASL_PLAINTEXT", "SASL_SSL"],
    },
    "sasl.mechanisms": {"type": str, "allowed": ["GSSAPI", "PLAIN", "SCRAM-SHA-256", "SCRAM-SHA-512", "OAUTHBEARER"]},
    "sasl.mechanism": {"type": str, "allowed": ["GSSAPI", "PLAIN", "SCRAM-SHA-256", "SCRAM-SHA-512", "OAUTHBEARER"]},
    "sasl.username": {"type": str, "allowed": None},
    "sasl.password": {"type": str, "allowed": None},
    "ssl.ca.location": {"type": str, "allowed": None},
    "ssl.certificate.location": {"type": str, "allowed": None},
    "ssl.key.location": {"type": str, "allowed": None},
    "ssl.key.password": {"type": str, "allowed": None},
    "error_cb": {"type": Callable, "args": 1},
    "stats_cb": {"type": Callable, "args": 1},
    "throttle_cb": {"type": Callable, "args": 1},
    "on_commit": {"type": Callable, "args": 2},
}

_REJECTED_PROPERTY = re.compile(r'configuration property:?\s*"([^"]+)"')


class ResolvedConfig(NamedTuple):
    config: dict[str, Any]
    warnings: list[str]


def _coerce(expected_type: Any, value: Any) -> Any:
    """Coerce string values of boolean and integer properties. Raises ValueError if that is not possible."""
    if expected_type is bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false"):
            return value.lower() == "true"
        raise ValueError(f"expected bool, got {value!r}")
    elif expected_type is int:
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                pass
        raise ValueError(f"expected int, got {value!r}")
    elif expected_type is Callable:
        if callable(value):
            return value
        raise ValueError(f"expected callable, got {type(value).__name__}")
    elif isinstance(value, str):
        return value
    raise ValueError(f"expected str, got {type(value).__name__}")


def _check_property(key: str, value: Any) -> Any:
    """Validates a single known property against the schema and returns its coerced value."""
    rules = consumer_config_schema[key]
    value = _coerce(rules["type"], value)

    allowed_range = rules.get("range")
    if allowed_range and not (allowed_range[0] <= value <= allowed_range[1]):
        raise ValueError(f"out of range, expected {allowed_range}, got {value}")

    allowed_values = rules.get("allowed")
    if allowed_values and value not in allowed_values:
        raise ValueError(f"expected one of {allowed_values}, got {value}")
    return value


def resolve_config(config: Mapping[str, Any], require_group_id: bool = False) -> ResolvedConfig:
    """
    Resolves a user supplied configuration mapping into the dictionary handed to confluent_kafka.Consumer.

    Resolution is permissive: malformed entries are dropped and reported as warnings instead of failing, since the
    client library validates the remaining runtime values itself. A missing `group.id` is reported as a warning too,
    unless `require_group_id` is set.

    :param config: Configuration mapping (usually string keys and string values)
    :param require_group_id: Fail on a missing `group.id` instead of only warning about it
    :returns: ResolvedConfig with the usable configuration and collected warnings
    :raises KafkaConfigException: If `require_group_id` is set and `group.id` is missing
    """
    resolved: dict[str, Any] = {}
    warnings: list[str] = []

    for key, value in config.items():
        if not isinstance(key, str) or not key:
            warnings.append(f"Ignoring configuration parameter with invalid name: {key!r}")
            continue
        if value is None:
            warnings.append(f"Ignoring configuration parameter without value: {key}")
            continue
        if key == "log_cb":
            warnings.append("Ignoring `log_cb`, the Python client uses the `logger` configuration property instead")
            continue

        if key in consumer_config_schema:
            try:
                resolved[key] = _check_property(key, value)
            except ValueError as err:
                warnings.append(f"Ignoring invalid value for {key}: {err}")
        else:
            resolved[key] = value

    if not resolved.get("group.id"):
        if require_group_id:
            raise KafkaConfigException("Configuration validation errors: group.id is required")
        warnings.append("Configuration is missing group.id, consumer group operations will fail")

    return ResolvedConfig(resolved, warnings)


def rejected_property(reason: Optional[str], config: Mapping[str, Any]) -> Optional[str]:
    """
    Finds which configuration key a librdkafka error message refers to.

    >>> rejected_property('No such configuration property: "foo.bar"', {"foo.bar": "1"})
    'foo.bar'
    >>> rejected_property("Broker transport failure", {"foo.bar": "1"}) is None
    True
    """
    if not reason:
        return None
    match = _REJECTED_PROPERTY.search(reason)
    if match and match.group(1) in config:
        return match.group(1)
    return None


def parse_loglevel(value: Optional[str], default: str = "WARNING") -> str:
    """Normalizes a log level name coming from the environment."""
    if not value:
        return default
    value = value.strip().upper()
    if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        return default
    return value
