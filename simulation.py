import math

from queue_config import ConfigurationError
from queue_simulation import Simulation


def run_simulation(config, ticks, on_tick=None):
    """
    Runs a queue simulation for the given number of ticks.

    on_tick, if given, is called with the simulation after every tick.
    Returns the Simulation so callers can read its counters and the
    requests still in flight.
    """
    if ticks < 0:
        raise ConfigurationError(f"Ticks must not be negative (got {ticks})")

    sim = Simulation(config)
    for _ in range(ticks):
        sim.step()
        if on_tick is not None:
            on_tick(sim)
    return sim


def format_result(result, raw=False):
    """
    Formats a Result for printing.

    Raw mode is the bare availability ratio. The default mode is the
    availability as a percentage followed by the outcome counts.
    """
    availability = result.availability()
    if raw:
        return f"{availability:f}"

    if math.isnan(availability):
        headline = "Availability: n/a (no requests resolved)"
    else:
        headline = f"Availability: {100 * availability:.2f}%"
    return "\n".join([
        headline,
        f"  Successes:   {result.successes}",
        f"  Timeouts:    {result.timeouts}",
        f"  Rejections:  {result.rejections}",
    ])


def print_stats(result, name=None, raw=False):
    """
    Prints the availability and outcome counts of a run.
    """
    if name and not raw:
        print(f"{name}:")
    print(format_result(result, raw=raw))
