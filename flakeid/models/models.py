from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field

# 2020-01-01T00:00:00.000Z, millisecond precision
DEFAULT_EPOCH = 1577836800000
DEFAULT_TIME_ACCURACY = 1_000_000
DEFAULT_NODE_BITS = 10
DEFAULT_SEQUENCE_BITS = 12

# bits left after reserving the sign bit of a signed 64 bit integer
USABLE_BITS = 63


class WorkerConfig(BaseModel):
    """
    Settings a Worker is built from.

    `epoch` is written at the precision ids should be minted at: 10 digits for
    seconds, 13 for milliseconds, 16 for microseconds. `0` selects the default
    epoch. `time_accuracy` (nanoseconds per time unit) is filled in by
    `flakeid.core.validator.validate` and should not be passed by callers.
    """
    model_config = ConfigDict(frozen=True, extra="forbid")

    epoch: int = Field(0, description="reference timestamp, 0 for the default epoch")
    sequence_bits: int = Field(DEFAULT_SEQUENCE_BITS, description="width of the per time unit counter")
    node_bits: int = Field(DEFAULT_NODE_BITS, description="width of the node id")
    node_id: int = Field(0, description="id of this worker among all running workers")
    time_accuracy: int = Field(0, description="nanoseconds per time unit, derived from epoch")

    @property
    def timestamp_shift(self) -> int:
        return self.sequence_bits + self.node_bits

    @property
    def max_node_id(self) -> int:
        return (1 << self.node_bits) - 1

    @property
    def sequence_mask(self) -> int:
        return (1 << self.sequence_bits) - 1

    @property
    def max_elapsed(self) -> int:
        """Largest elapsed time (in time units) an id can still carry."""
        return (1 << (USABLE_BITS - self.timestamp_shift)) - 1


class FlakeParts(BaseModel):
    """An id split back into its fields. `timestamp` is absolute, in time units."""
    model_config = ConfigDict(frozen=True)

    id: int
    timestamp: int
    elapsed: int
    node_id: int
    sequence: int

    def to_datetime(self, config: WorkerConfig) -> datetime:
        if not config.time_accuracy:
            from flakeid.core.validator import validate

            config = validate(config)
        nanos = self.timestamp * config.time_accuracy
        seconds, rest = divmod(nanos, 1_000_000_000)
        return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=rest // 1000)
