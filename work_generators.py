"""
Work duration generators.

A generator is a function taking no arguments and returning the number of
ticks of work a newly admitted request needs. The simulation calls it once
per admitted request.
"""

import time

import numpy as np

from queue_config import ConfigurationError


def fixed_work(n):
    """Every request needs exactly `n` ticks of work."""
    if n <= 0:
        raise ConfigurationError(f"Work must be positive (got {n})")

    def work():
        return n
    return work


def doubling_work(base, rng):
    """
    Work of `base * 2**k` ticks with k drawn from a Poisson(1) distribution.

    Most requests need `base` or `2 * base` ticks, with a long tail of
    requests needing many times more.
    """
    if base <= 0:
        raise ConfigurationError(f"Work must be positive (got {base})")

    def work():
        return int(base * 2 ** int(rng.poisson(1.0)))
    return work


def exponential_work(mean, rng):
    """Exponentially distributed work with the given mean, at least one tick."""
    if mean <= 0:
        raise ConfigurationError(f"Work must be positive (got {mean})")

    def work():
        return max(1, int(round(rng.exponential(mean))))
    return work


WORK_DISTRIBUTIONS = ('doubling', 'fixed', 'exponential')


def make_work(kind, base, seed=None):
    """Build a work generator by name, seeded from the clock when no seed is given."""
    if seed is None:
        seed = int(time.time())
    rng = np.random.default_rng(seed)

    if kind == 'fixed':
        return fixed_work(base)
    if kind == 'doubling':
        return doubling_work(base, rng)
    if kind == 'exponential':
        return exponential_work(base, rng)
    raise ConfigurationError(
        f"Unknown work distribution: {kind!r} (accepted values: {', '.join(WORK_DISTRIBUTIONS)})")
