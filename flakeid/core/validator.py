"""
Checks a WorkerConfig and fills in the values derived from it.

The precision of an epoch is guessed from how many decimal digits it has
(10 -> seconds, 13 -> milliseconds, 16 -> microseconds). This only works for
epochs between roughly 2001 and 2286; anything older or further out has a
different digit count and is rejected even when it is a sensible timestamp.
"""
import logging

from flakeid.core.commonExceptions import ConfigurationError, exceptionHandler
from flakeid.models.models import DEFAULT_EPOCH, DEFAULT_TIME_ACCURACY, USABLE_BITS, WorkerConfig

logger = logging.getLogger("flakeid.validator")

# digit count -> nanoseconds per time unit
EPOCH_ACCURACY = {
    10: 1_000_000_000,
    13: 1_000_000,
    16: 1_000,
}


def check_epoch(epoch: int) -> int:
    """
    Return the time accuracy (nanoseconds per unit) matching `epoch`.

    Raises:
        ConfigurationError: if the epoch is negative or its length is not 10, 13 or 16 digits.
    """
    if epoch < 0:
        raise ConfigurationError(f"epoch can't be negative, got {epoch}")
    accuracy = EPOCH_ACCURACY.get(len(str(epoch)))
    if accuracy is None:
        raise ConfigurationError(f"epoch length must be 10, 13 or 16 digits, got {epoch}")
    return accuracy


def check_bits(node_bits: int, sequence_bits: int) -> None:
    if sequence_bits < 0 or node_bits < 0:
        raise ConfigurationError("bits can't be less than 0")
    if sequence_bits + node_bits > USABLE_BITS:
        raise ConfigurationError(f"sum of bits can't be greater than {USABLE_BITS}")


@exceptionHandler
def validate(config: WorkerConfig) -> WorkerConfig:
    """
    Validate `config` and return a copy with `time_accuracy` derived.

    Parameters:
        config (WorkerConfig): settings as given by the caller.

    Returns:
        WorkerConfig: ready to build a Worker from.

    Raises:
        ConfigurationError: on a bad epoch, bad bit widths or a node id out of range.
    """
    if config is None:
        raise ConfigurationError("config should not be None")

    if config.epoch == 0:
        epoch, accuracy = DEFAULT_EPOCH, DEFAULT_TIME_ACCURACY
    else:
        epoch, accuracy = config.epoch, check_epoch(config.epoch)

    check_bits(config.node_bits, config.sequence_bits)

    max_node_id = (1 << config.node_bits) - 1
    if not 0 <= config.node_id <= max_node_id:
        raise ConfigurationError(
            f"node id can't be greater than {max_node_id} or less than 0, got {config.node_id}"
        )

    validated = config.model_copy(update={"epoch": epoch, "time_accuracy": accuracy})
    logger.debug("validated config %s", validated)
    return validated
