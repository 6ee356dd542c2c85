import logging
import math
import random
from dataclasses import dataclass, asdict
from typing import List, Optional

from queue_config import ConfigurationError, PopMethod, SimulationConfig, parse_method
from request import Request

log = logging.getLogger(__name__)


@dataclass
class Result:
    """Outcome counters of a queue run."""
    successes: int = 0
    timeouts: int = 0
    rejections: int = 0

    def total(self) -> int:
        return self.successes + self.timeouts + self.rejections

    def availability(self) -> float:
        """
        Fraction of resolved requests that succeeded.

        Returns NaN when no request has been resolved yet. Callers must treat
        NaN as "no data", not as 0% or 100%.
        """
        total = self.total()
        if total == 0:
            return math.nan
        return self.successes / total

    def as_dict(self):
        data = asdict(self)
        data['availability'] = self.availability()
        return data


class Simulation:
    """
    A bounded queue with a single producer and a single consumer,
    advanced one logical tick at a time.

    Every `rate` ticks a request arrives. It is rejected if the queue is
    full, otherwise it waits in the queue until the consumer picks it using
    the configured pop method. A request that runs out of timeout budget,
    whether waiting or in service, counts as a timeout.
    """
    def __init__(self, config: SimulationConfig):
        config.validate()

        self.size = config.size
        self.rate = config.rate
        self.timeout = config.timeout
        self.work = config.work
        self.method = config.method
        self.rng = random.Random(config.seed)

        # State
        self.queue: List[Request] = []
        self.current: Optional[Request] = None
        self.tick = 0
        self.counter = Result()

        # Metrics
        self.arrivals = 0
        self.admitted = 0
        self.max_queue_length = 0
        self.busy_ticks = 0

        log.info("Simulation initialized: size=%d, rate=%d, timeout=%d, method=%s",
                 self.size, self.rate, self.timeout, self.method.value)

    def run(self, ticks: int) -> Result:
        """Advance the simulation `ticks` times and return a copy of the counters."""
        if ticks < 0:
            raise ConfigurationError(f"Ticks must not be negative (got {ticks})")
        for _ in range(ticks):
            self.step()
        log.info("Run finished at tick %d: %s", self.tick, self.counter)
        return Result(**asdict(self.counter))

    def step(self):
        """Advance the simulation by a single tick."""
        self.tick += 1

        # 1. Work on the current request
        if self.current is not None:
            self._serve_current()

        # 2. Time out waiting requests
        self._expire_waiting()

        # 3. Accept or reject an incoming request
        if self.tick % self.rate == 0:
            self._admit()

        # 4. Pick a new request to work on
        if self.current is None and self.queue:
            self.current = self._pop()
            log.debug("T=%d: dispatched %r", self.tick, self.current)

        if self.current is not None:
            self.busy_ticks += 1
        self.max_queue_length = max(self.max_queue_length, len(self.queue))

    def _serve_current(self):
        req = self.current
        req.tick()
        req.work()

        # A timeout wins over a completion on the same tick
        if req.timed_out():
            self.counter.timeouts += 1
            self.current = None
            log.debug("T=%d: %r timed out in service", self.tick, req)
        elif req.done():
            self.counter.successes += 1
            self.current = None
            log.debug("T=%d: %r completed", self.tick, req)

    def _expire_waiting(self):
        remaining = []
        for req in self.queue:
            req.tick()
            if req.timed_out():
                self.counter.timeouts += 1
                log.debug("T=%d: %r timed out while waiting", self.tick, req)
            else:
                remaining.append(req)
        self.queue = remaining

    def _admit(self):
        self.arrivals += 1
        if len(self.queue) >= self.size:
            self.counter.rejections += 1
            log.debug("T=%d: queue full, request rejected", self.tick)
            return

        req = Request(self.work(), self.timeout,
                      request_id=self.admitted, arrival_tick=self.tick)
        self.admitted += 1
        self.queue.append(req)
        log.debug("T=%d: admitted %r", self.tick, req)

    def _pop(self) -> Request:
        """Remove and return a waiting request according to the pop method."""
        if self.method is PopMethod.FIFO:
            return self.queue.pop(0)
        if self.method is PopMethod.FILO:
            return self.queue.pop()
        if self.method is PopMethod.RANDOM:
            return self.queue.pop(self.rng.randrange(len(self.queue)))
        # Construction validates the method, so this is a defect
        raise AssertionError(f"Nonsense pop method used: {self.method!r}")

    def in_flight(self) -> int:
        """Admitted requests not yet resolved."""
        return len(self.queue) + (1 if self.current is not None else 0)

    def get_metrics(self):
        """Get run metrics for analysis"""
        return {
            **self.counter.as_dict(),
            'ticks': self.tick,
            'arrivals': self.arrivals,
            'admitted': self.admitted,
            'in_flight': self.in_flight(),
            'queue_length': len(self.queue),
            'max_queue_length': self.max_queue_length,
            'utilization': self.busy_ticks / self.tick if self.tick else 0.0,
        }


def build_simulation(size, rate, timeout, work, method=PopMethod.FIFO, seed=None):
    """Convenience constructor accepting a method name or PopMethod."""
    return Simulation(SimulationConfig(
        size=size, rate=rate, timeout=timeout, work=work,
        method=parse_method(method), seed=seed,
    ))
