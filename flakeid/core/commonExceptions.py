from typing import Callable
from functools import wraps
import logging

logger = logging.getLogger("flakeid.exceptions")


class FlakeError(Exception):
    """Base class for every error raised by flakeid."""


class ConfigurationError(FlakeError, ValueError):
    """Invalid epoch, bit widths or node id. Raised before a Worker exists."""


class ClockRegressionError(FlakeError):
    """
    The clock reported a time earlier than the last issued timestamp.

    The worker state is left untouched, the caller may retry later.
    """

    def __init__(self, delta: int):
        self.delta = delta
        super().__init__(
            f"Clock moved backwards. Refusing to generate id for {delta} time units"
        )


class EpochRangeError(FlakeError, OverflowError):
    """A new default epoch would push ids outside the 63 usable bits."""

    def __init__(self, epoch: int, min_epoch: int, message: str = None):
        self.epoch = epoch
        self.min_epoch = min_epoch
        super().__init__(
            message or f"you can't set epoch time before {min_epoch} (got {epoch})"
        )


def exceptionHandler(func: Callable):
    """Log errors escaping `func` with its qualified name, then re-raise them."""
    @wraps(func)
    def routing(*args, **kwargs):
        route_name = f"{func.__module__}.{func.__qualname__}"
        try:
            return func(*args, **kwargs)
        except ClockRegressionError as clockex:
            logger.warning("ClockRegressionError in %s: %s", route_name, clockex)
            raise
        except FlakeError as flakex:
            logger.info(
                "%s in %s: %s",
                type(flakex).__name__,
                route_name,
                str(flakex)[:300],
            )
            raise
        except Exception as Err:
            # Lightweight source details without formatting entire traceback
            tb = Err.__traceback__
            last_tb = tb
            while last_tb and last_tb.tb_next:
                last_tb = last_tb.tb_next

            if last_tb is not None:
                filename = last_tb.tb_frame.f_code.co_filename
                lineno = last_tb.tb_lineno
                func_name = last_tb.tb_frame.f_code.co_name
            else:
                filename = None
                lineno = None
                func_name = None

            logger.error(
                "Unhandled exception in %s at %s:%s in %s: %s: %s",
                route_name,
                filename,
                lineno,
                func_name,
                type(Err).__name__,
                Err,
            )

            if logger.isEnabledFor(logging.DEBUG):
                logger.exception("Stack trace (debug)")
            raise
    return routing
