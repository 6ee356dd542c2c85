"""
Configuration for queue simulations.

Holds the pop disciplines, the validated simulation configuration and the
default parameter values surfaced by the command line.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union


VERSION = "2"

# Defaults of the command line program. It can help to imagine a tick being
# one millisecond long.
DEFAULTS = {
    'rate': 10,
    'timeout': 100,
    'work': 30,
    'size': 5,
    'method': 'FIFO',
    'ticks': 100000,
}


class ConfigurationError(ValueError):
    """Raised when a simulation is configured with invalid parameters."""


class PopMethod(Enum):
    """Method used when popping requests from the queue."""
    FIFO = "FIFO"
    FILO = "FILO"
    RANDOM = "RANDOM"


def parse_method(method: Union[str, PopMethod]) -> PopMethod:
    """
    Normalize a pop method name.

    Matching is case-insensitive on substrings, so "fifo", "FIFO-queue" and
    "Fifo" all select FIFO. Any string containing "rand" selects RANDOM.
    """
    if isinstance(method, PopMethod):
        return method
    if not isinstance(method, str):
        raise ConfigurationError(f"Unknown pop method given: {method!r}")

    m = method.lower()
    if "fifo" in m:
        return PopMethod.FIFO
    if "filo" in m:
        return PopMethod.FILO
    if "rand" in m:
        return PopMethod.RANDOM
    raise ConfigurationError(
        f"Unknown pop method given: {method!r} (accepted values: FIFO, FILO, RANDOM)")


@dataclass(frozen=True)
class SimulationConfig:
    size: int                       # capacity of the waiting queue
    rate: int                       # a new request arrives every `rate` ticks
    timeout: int                    # ticks a request has to complete
    work: Callable[[], int]         # draws the work duration of a new request
    method: PopMethod = PopMethod.FIFO
    seed: Optional[int] = None      # random source for the RANDOM method

    def validate(self) -> None:
        if not isinstance(self.method, PopMethod):
            raise ConfigurationError(f"Unsupported pop method given: {self.method!r}")
        for name in ('size', 'rate', 'timeout'):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(f"{name.capitalize()} must be an integer (got {value!r})")
            if value <= 0:
                raise ConfigurationError(f"{name.capitalize()} must be positive (got {value})")
        if not callable(self.work):
            raise ConfigurationError("Work must be a callable returning a work duration")
