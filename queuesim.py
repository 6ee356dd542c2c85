#!/usr/bin/env python3
"""
queuesim - Simulate a simple bounded queue

Simulates a single producer and consumer of a bounded queue using discrete
ticks for time. Waiting requests can time out, and the run reports the
successes, timeouts and rejections along with the resulting availability.
"""

import argparse
import logging
import sys

from queue_config import DEFAULTS, VERSION, ConfigurationError, SimulationConfig, parse_method
from realtime import RealTimeSimulation
from simulation import print_stats, run_simulation
from work_generators import WORK_DISTRIBUTIONS, make_work


DESCRIPTION = """\
queuesim simulates a simple bounded queue using discrete ticks for time. It
simulates a single producer and consumer of the queue, where waiting requests
can time out, and keeps track of the successes, timeouts, and rejections.

It can be helpful to imagine a single tick being one millisecond long when
setting values for the various program options."""

EPILOG = """\
With --realtime the queue runs against the wall clock instead: RATE requests
arrive per second, and WORK and TIMEOUT are measured in milliseconds.

CONTRIBUTING:

Patches are welcome on the project's GitHub page:

    https://www.github.com/gunnihinn/queuesim

COPYRIGHT:

This software is licensed under the GPLv3.
Copyright 2019, Gunnar Þór Magnússon <gunnar@magnusson.io>."""


def build_parser():
    parser = argparse.ArgumentParser(
        prog='queuesim',
        description=DESCRIPTION,
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument('--method', default=DEFAULTS['method'],
                        help="Method to use when popping items from queue "
                             "(default: %(default)s). Accepted values: FIFO, FILO, RANDOM.")
    parser.add_argument('--rate', type=int, default=DEFAULTS['rate'],
                        help="A new request comes every RATE ticks (default: %(default)s)")
    parser.add_argument('--size', type=int, default=DEFAULTS['size'],
                        help="Size of queue (default: %(default)s)")
    parser.add_argument('--timeout', type=int, default=DEFAULTS['timeout'],
                        help="Requests have TIMEOUT ticks to complete (default: %(default)s)")
    parser.add_argument('--work', type=int, default=DEFAULTS['work'],
                        help="Requests take WORK ticks to complete (default: %(default)s)")
    parser.add_argument('--work-dist', choices=WORK_DISTRIBUTIONS, default='doubling',
                        help="Distribution of work: 'doubling' takes WORK * 2**k ticks with "
                             "k ~ Poisson(1), 'fixed' always WORK, 'exponential' has mean WORK "
                             "(default: %(default)s)")
    parser.add_argument('--ticks', type=int, default=DEFAULTS['ticks'],
                        help="Run for TICKS ticks (default: %(default)s)")
    parser.add_argument('--seed', type=int, default=None,
                        help="Seed for random draws (default: current time)")
    parser.add_argument('--raw', action='store_true',
                        help="Don't pretty-print result")
    parser.add_argument('--realtime', action='store_true',
                        help="Run against the wall clock instead of logical ticks")
    parser.add_argument('--duration', type=float, default=None,
                        help="Seconds to run in realtime mode (default: until interrupted)")
    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Log simulation events")
    parser.add_argument('--version', action='version', version=VERSION,
                        help="Print version and exit")
    return parser


def config_from_args(args):
    """Validate parsed options and build a SimulationConfig."""
    if args.rate <= 0:
        raise ConfigurationError("Rate must be positive")
    if args.timeout <= 0:
        raise ConfigurationError("Timeout must be positive")
    if args.work <= 0:
        raise ConfigurationError("Work must be positive")
    if args.size <= 0:
        raise ConfigurationError("Size must be positive")
    if args.ticks < 0:
        raise ConfigurationError("Ticks must not be negative")
    if args.duration is not None and args.duration <= 0:
        raise ConfigurationError("Duration must be positive")

    config = SimulationConfig(
        size=args.size,
        rate=args.rate,
        timeout=args.timeout,
        work=make_work(args.work_dist, args.work, seed=args.seed),
        method=parse_method(args.method),
        seed=args.seed,
    )
    config.validate()
    return config


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = config_from_args(args)
    except ConfigurationError as e:
        parser.error(str(e))

    if not args.realtime:
        sim = run_simulation(config, args.ticks)
        print_stats(sim.counter, raw=args.raw)
        return 0

    sim = RealTimeSimulation(config)
    try:
        result = sim.run(args.duration)
    except KeyboardInterrupt:
        result = sim.snapshot()
        print_stats(result, raw=args.raw)
        print("\nInterrupted", file=sys.stderr)
        return 1
    print_stats(result, raw=args.raw)
    return 0


if __name__ == '__main__':
    sys.exit(main())
