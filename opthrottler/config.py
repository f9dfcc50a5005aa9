import math
from dataclasses import dataclass
from enum import Enum


class InputFormat(str, Enum):
    BSON = "bson"
    JSON = "json"


@dataclass
class ReplayConfig:
    ops_per_second: float = 1.0
    progress_every: int = 1_000
    input_format: InputFormat = InputFormat.BSON

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not math.isfinite(self.ops_per_second) or self.ops_per_second <= 0:
            raise ValueError(
                f"ops_per_second must be a finite number > 0, got {self.ops_per_second!r}"
            )
        if self.progress_every <= 0:
            raise ValueError("progress_every must be > 0")
        # Accept plain strings coming from the CLI or the environment
        self.input_format = InputFormat(self.input_format)


@dataclass
class SqlStoreConfig:
    table_name: str = "oplog_documents"

    def __post_init__(self) -> None:
        if not self.table_name:
            raise ValueError("table_name cannot be empty")
