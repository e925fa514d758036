import os
import logging
import threading
from dotenv import load_dotenv

from flakeid.core.clock import Clock, SystemClock
from flakeid.core.commonExceptions import ConfigurationError, EpochRangeError, exceptionHandler
from flakeid.core.validator import check_bits, check_epoch
from flakeid.models.models import (
    DEFAULT_EPOCH,
    DEFAULT_NODE_BITS,
    DEFAULT_SEQUENCE_BITS,
    DEFAULT_TIME_ACCURACY,
    WorkerConfig,
)
from flakeid.gen.idWorker import Worker, new_worker

logger = logging.getLogger("flakeid.config")

MAX_INT64 = (1 << 63) - 1


def _int_env(name: str, raw: str | None) -> int | None:
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


class FlakeEnvironmentSetup:
    """
    Worker settings taken from the environment (and a `.env` file, if present).

    Iterating an instance yields `(name, value)` for every setting, unset ones
    as `None`.
    """
    SETTINGS = ("FLAKE_EPOCH", "FLAKE_NODE_ID", "FLAKE_NODE_BITS", "FLAKE_SEQUENCE_BITS")

    def __init__(self, dotenv_path: str = None):
        load_dotenv(dotenv_path)
        self.attrs = [(name, _int_env(name, os.getenv(name))) for name in self.SETTINGS]
        self.index = 0

    def __iter__(self):
        return self

    def __next__(self):
        if self.index == len(self.attrs):
            raise StopIteration
        _next = self.attrs[self.index]
        self.index += 1
        return _next

    def as_dict(self) -> dict[str, int | None]:
        return dict(self.attrs)


class WorkerDefaults:
    """
    Epoch and bit widths used for workers built without an explicit config.

    Each instance is independent; changing it only affects workers created
    afterwards, existing workers keep what they were built with.
    """

    def __init__(
        self,
        epoch: int = DEFAULT_EPOCH,
        node_bits: int = DEFAULT_NODE_BITS,
        sequence_bits: int = DEFAULT_SEQUENCE_BITS,
        clock: Clock = None,
    ):
        check_bits(node_bits, sequence_bits)
        self._lock = threading.Lock()
        self._clock = clock or SystemClock()
        if epoch == 0:
            self._epoch, self._time_accuracy = DEFAULT_EPOCH, DEFAULT_TIME_ACCURACY
        else:
            self._epoch, self._time_accuracy = epoch, check_epoch(epoch)
        self._node_bits = node_bits
        self._sequence_bits = sequence_bits
        self.node_id = 0

    @classmethod
    def from_env(cls, dotenv_path: str = None, clock: Clock = None) -> "WorkerDefaults":
        env = FlakeEnvironmentSetup(dotenv_path).as_dict()
        for name, value in env.items():
            logger.debug("Verifying environment settings for %s=%s", name, value)
        defaults = cls(
            node_bits=DEFAULT_NODE_BITS if env["FLAKE_NODE_BITS"] is None else env["FLAKE_NODE_BITS"],
            sequence_bits=DEFAULT_SEQUENCE_BITS if env["FLAKE_SEQUENCE_BITS"] is None else env["FLAKE_SEQUENCE_BITS"],
            clock=clock,
        )
        if env["FLAKE_EPOCH"]:
            defaults.set_epoch(env["FLAKE_EPOCH"])
        defaults.node_id = env["FLAKE_NODE_ID"] or 0
        return defaults

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def time_accuracy(self) -> int:
        return self._time_accuracy

    @property
    def bit_widths(self) -> tuple[int, int]:
        """(node_bits, sequence_bits)"""
        with self._lock:
            return self._node_bits, self._sequence_bits

    @exceptionHandler
    def set_epoch(self, epoch: int) -> None:
        """
        Replace the default epoch.

        The time elapsed since `epoch`, shifted past the node and sequence
        fields, has to fit in a signed 64 bit integer, and the epoch can't be
        in the future.

        Raises:
            ConfigurationError: if the epoch length is not 10, 13 or 16 digits.
            EpochRangeError: if ids built from it would not fit; the previous epoch stays.
        """
        accuracy = check_epoch(epoch)
        with self._lock:
            shift = self._node_bits + self._sequence_bits
            now = self._clock.time_ns() // accuracy
            min_epoch = now - (MAX_INT64 >> shift)
            elapsed = now - epoch
            if elapsed < 0:
                raise EpochRangeError(epoch, min_epoch, f"epoch {epoch} is in the future (now is {now})")
            if (elapsed << shift) > MAX_INT64:
                raise EpochRangeError(epoch, min_epoch)
            self._epoch = epoch
            self._time_accuracy = accuracy
        logger.info("default epoch set to %s (%s ns per unit)", epoch, accuracy)

    @exceptionHandler
    def set_bit_widths(self, node_bits: int, sequence_bits: int) -> None:
        """
        Replace the default node and sequence widths.

        Raises:
            ConfigurationError: if either is negative or their sum exceeds 63.
        """
        check_bits(node_bits, sequence_bits)
        with self._lock:
            self._node_bits = node_bits
            self._sequence_bits = sequence_bits
        logger.info("default bit widths set to node=%s sequence=%s", node_bits, sequence_bits)

    def make_config(self, node_id: int = None) -> WorkerConfig:
        with self._lock:
            return WorkerConfig(
                epoch=self._epoch,
                node_bits=self._node_bits,
                sequence_bits=self._sequence_bits,
                node_id=self.node_id if node_id is None else node_id,
            )

    def new_worker(self, node_id: int = None, clock: Clock = None) -> Worker:
        return new_worker(self.make_config(node_id), clock=clock or self._clock)
