"""Exception taxonomy for the indicator engine.

Structural contract violations (time running backwards, two different
entry types under one key) are fatal and surface to the driver.  Missing
history is propagated to the caller unless the formula opted into a
documented fallback.  Numeric degeneracy is never raised; formulas floor
their denominators instead.
"""


class EngineError(Exception):
    """Base class for all engine errors."""


class InsufficientHistoryError(EngineError, IndexError):
    """A lag was requested beyond the recorded (or retained) depth of a series."""

    def __init__(self, lag: int, available: int, name: str = "") -> None:
        self.lag = lag
        self.available = available
        self.name = name
        label = f" '{name}'" if name else ""
        super().__init__(
            f"series{label} has {available} bar(s) of history, lag {lag} requested"
        )


class OutOfOrderBarError(EngineError):
    """The driver violated the monotonic bar contract."""


class KeyCollisionError(EngineError):
    """A cache key resolved to an entry of an unexpected type."""


class ConfigError(EngineError, ValueError):
    """Raised when a configuration file is malformed or has unknown fields."""
