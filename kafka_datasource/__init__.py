# The code in this (root) module, if not otherwise specified, is licensed under the MIT License.

from kafka_datasource.core.kconsumer import KafkaDatasource
from kafka_datasource.exceptions import (
    KafkaBrokerException,
    KafkaClosedException,
    KafkaCommitException,
    KafkaConfigException,
)
from kafka_datasource.klogger import get_custom_logger
from kafka_datasource.models.kmodels import OFFSET_UNKNOWN
from kafka_datasource.utils import resolve_config

__all__ = [
    "KafkaDatasource",
    "KafkaBrokerException",
    "KafkaClosedException",
    "KafkaCommitException",
    "KafkaConfigException",
    "OFFSET_UNKNOWN",
    "get_custom_logger",
    "resolve_config",
]
