from typing import Optional


class KafkaConfigException(Exception):
    pass


class KafkaBrokerException(Exception):
    """Raised for genuine broker faults. Carries the broker's diagnostic text and error code."""

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class KafkaCommitException(Exception):
    pass


class KafkaClosedException(Exception):
    pass
