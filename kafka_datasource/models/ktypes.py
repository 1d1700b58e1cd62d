from typing import Literal, TypedDict

LogLevelType = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
Delimiter = str | bytes


class WatermarkDict(TypedDict):
    low: int
    high: int
