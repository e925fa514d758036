import logging
import threading
from typing import Optional

from flakeid.core.clock import Clock, SystemClock
from flakeid.core.commonExceptions import ClockRegressionError, exceptionHandler
from flakeid.core.validator import validate
from flakeid.models.models import FlakeParts, WorkerConfig

logger = logging.getLogger("flakeid.worker")


class Worker:
    """
    63-bit layout (big-endian), widths taken from the config:
        1 bit               = sign, always 0
        63 - shift bits     = time units since epoch
        node_bits           = node_id
        sequence_bits       = per time unit sequence
    where shift = node_bits + sequence_bits (22 with the default 10/12 split).

    One lock guards every call, so a single Worker can be shared between
    threads. `next_sleep()` sleeps while holding it.
    """

    def __init__(self, config: WorkerConfig, clock: Clock = None):
        self._config = validate(config)
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()

        self._last_timestamp = -1
        self._sequence = 0

        self._accuracy = self._config.time_accuracy
        self._epoch = self._config.epoch
        self._sequence_mask = self._config.sequence_mask
        self._node_id_shifted = self._config.node_id << self._config.sequence_bits
        self._timestamp_shift = self._config.timestamp_shift
        self._max_elapsed = self._config.max_elapsed
        logger.debug(
            "worker %s ready: epoch=%s node_bits=%s sequence_bits=%s",
            self._config.node_id,
            self._epoch,
            self._config.node_bits,
            self._config.sequence_bits,
        )

    @property
    def config(self) -> WorkerConfig:
        return self._config

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def node_id(self) -> int:
        return self._config.node_id

    @exceptionHandler
    def next(self) -> int:
        """Next id. Busy-spins on the clock when the sequence runs out."""
        with self._lock:
            return self._next(sleep=False)

    @exceptionHandler
    def next_sleep(self) -> int:
        """Next id. Sleeps one time unit per check when the sequence runs out."""
        with self._lock:
            return self._next(sleep=True)

    def try_next(self) -> Optional[int]:
        """
        Next id, or None when the sequence of the current time unit is used up.

        Never waits; nothing changes when None is returned.
        """
        with self._lock:
            timestamp = self._time_gen()
            self._check_clock(timestamp)
            if timestamp == self._last_timestamp:
                sequence = (self._sequence + 1) & self._sequence_mask
                if sequence == 0:
                    return None
            else:
                sequence = 0
            return self._commit(timestamp, sequence)

    def decode(self, flake_id: int) -> FlakeParts:
        return decode(flake_id, self._config)

    def _next(self, sleep: bool) -> int:
        timestamp = self._time_gen()
        self._check_clock(timestamp)

        if timestamp == self._last_timestamp:
            sequence = (self._sequence + 1) & self._sequence_mask
            if sequence == 0:
                logger.debug("sequence exhausted at %s, waiting for next time unit", timestamp)
                timestamp = self._til_next_timestamp(sleep)
        else:
            sequence = 0

        return self._commit(timestamp, sequence)

    def _check_clock(self, timestamp: int) -> None:
        if timestamp < self._last_timestamp:
            raise ClockRegressionError(self._last_timestamp - timestamp)

    def _commit(self, timestamp: int, sequence: int) -> int:
        elapsed = timestamp - self._epoch
        if elapsed < 0 or elapsed > self._max_elapsed:
            raise OverflowError(
                f"timestamp {timestamp} outside allowed range for epoch {self._epoch}"
            )
        self._sequence = sequence
        self._last_timestamp = timestamp
        return (elapsed << self._timestamp_shift) | self._node_id_shifted | sequence

    def _til_next_timestamp(self, sleep: bool) -> int:
        timestamp = self._time_gen()
        while timestamp <= self._last_timestamp:
            if sleep:
                self._clock.sleep(self._accuracy / 1_000_000_000)
            timestamp = self._time_gen()
        return timestamp

    def _time_gen(self) -> int:
        return self._clock.time_ns() // self._accuracy


def new_worker(config: WorkerConfig, node_id: int = None, clock: Clock = None) -> Worker:
    """
    Build a Worker from `config`.

    Parameters:
        config (WorkerConfig): settings, validated here.
        node_id (int): overrides `config.node_id` when given.
        clock (Clock): time source, the system clock by default.

    Raises:
        ConfigurationError: if the config or node id is invalid.
    """
    if node_id is not None:
        config = config.model_copy(update={"node_id": node_id})
    return Worker(config, clock=clock)


def decode(flake_id: int, config: WorkerConfig) -> FlakeParts:
    """Split `flake_id` into its fields using the widths and epoch of `config`."""
    if not config.time_accuracy:
        config = validate(config)
    elapsed = flake_id >> config.timestamp_shift
    return FlakeParts(
        id=flake_id,
        timestamp=elapsed + config.epoch,
        elapsed=elapsed,
        node_id=(flake_id >> config.sequence_bits) & config.max_node_id,
        sequence=flake_id & config.sequence_mask,
    )
