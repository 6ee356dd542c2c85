"""
Real-time queue simulation.

Instead of logical ticks this mode runs against the wall clock: a producer
thread delivers `rate` requests per second, a single consumer thread services
them one at a time, and every admitted request has a timer racing its
service. Whichever of completion or timeout happens first decides the
outcome; the loser has no effect.

Work and timeout are given in ticks of `time_unit` seconds (one millisecond
by default), so the same configuration can drive both modes. Results are a
best-effort approximation and are not reproducible between runs.
"""

import logging
import random
import threading
import time
from dataclasses import asdict
from typing import List, Optional

from queue_config import ConfigurationError, PopMethod, SimulationConfig
from queue_simulation import Result

log = logging.getLogger(__name__)

SUCCESS = "success"
TIMEOUT = "timeout"


class RealTimeRequest:
    """
    A request in the real-time queue.

    `outcome` is assigned at most once, while holding the simulation lock.
    `resolved` is set once the request needs no more service: it lets the
    consumer stop working on a request that timed out.
    """
    def __init__(self, request_id, work_seconds, timeout_seconds):
        self.id = request_id
        self.work_seconds = work_seconds
        self.timeout_seconds = timeout_seconds
        self.outcome: Optional[str] = None
        self.resolved = threading.Event()
        self.timer: Optional[threading.Timer] = None

    @property
    def dead(self):
        return self.outcome is not None

    def __repr__(self):
        return f"RealTimeRequest(id={self.id}, outcome={self.outcome})"


class RealTimeQueue:
    """
    Bounded queue shared by the producer and consumer threads.

    Every operation holds `lock` for its whole critical section and first
    drops requests that have already timed out.
    """
    def __init__(self, size, method, lock, rng=None):
        self.size = size
        self.method = method
        self.lock = lock
        self.rng = rng or random.Random()
        self.items: List[RealTimeRequest] = []

    def push(self, req) -> bool:
        """Append a request; returns False if the queue is full."""
        with self.lock:
            self._prune()
            if len(self.items) >= self.size:
                return False
            self.items.append(req)
            return True

    def pop(self) -> Optional[RealTimeRequest]:
        """Remove a live request according to the pop method, or None if empty."""
        with self.lock:
            self._prune()
            if not self.items:
                return None
            if self.method is PopMethod.FIFO:
                return self.items.pop(0)
            if self.method is PopMethod.FILO:
                return self.items.pop()
            if self.method is PopMethod.RANDOM:
                return self.items.pop(self.rng.randrange(len(self.items)))
            raise AssertionError(f"Nonsense pop method used: {self.method!r}")

    def _prune(self):
        self.items = [req for req in self.items if not req.dead]

    def __len__(self):
        with self.lock:
            return len(self.items)


class RealTimeSimulation:
    def __init__(self, config: SimulationConfig, time_unit=0.001, poll_interval=0.001):
        config.validate()
        if time_unit <= 0:
            raise ConfigurationError(f"Time unit must be positive (got {time_unit})")

        self.rate = config.rate
        self.timeout_seconds = config.timeout * time_unit
        self.work = config.work
        self.time_unit = time_unit
        self.poll_interval = poll_interval

        # One lock guards the queue, the outcome cells and the counters
        self.lock = threading.Lock()
        self.queue = RealTimeQueue(config.size, config.method, self.lock,
                                   random.Random(config.seed))
        self.counter = Result()
        self.arrivals = 0
        self.current: Optional[RealTimeRequest] = None
        self._pending: List[RealTimeRequest] = []

        self._stop = threading.Event()
        self._threads: List[threading.Thread] = []

    def start(self):
        self._stop.clear()
        self._threads = [
            threading.Thread(target=self._produce, name="producer", daemon=True),
            threading.Thread(target=self._consume, name="consumer", daemon=True),
        ]
        for t in self._threads:
            t.start()
        log.info("Real-time simulation started: %d arrivals/s, timeout %.3fs, method=%s",
                 self.rate, self.timeout_seconds, self.queue.method.value)

    def stop(self):
        """Stop both threads; requests still in flight stay unresolved."""
        # Set before reading _pending so _arrive never starts a timer we missed
        self._stop.set()
        with self.lock:
            pending = [req for req in self._pending if not req.dead]
        for req in pending:
            if req.timer is not None:
                req.timer.cancel()
            req.resolved.set()
        for t in self._threads:
            t.join(timeout=1.0)
        log.info("Real-time simulation stopped: %s, %d in flight", self.counter, len(pending))

    def run(self, duration=None) -> Result:
        """
        Run for `duration` seconds, or until interrupted when duration is None.
        """
        self.start()
        try:
            if duration is None:
                while not self._stop.wait(0.5):
                    pass
            else:
                self._stop.wait(duration)
        finally:
            self.stop()
        return self.snapshot()

    def snapshot(self) -> Result:
        with self.lock:
            return Result(**asdict(self.counter))

    def in_flight(self) -> int:
        with self.lock:
            return sum(1 for req in self._pending if not req.dead)

    def get_metrics(self):
        """Counters, arrivals and requests in flight, read atomically."""
        with self.lock:
            return {
                **self.counter.as_dict(),
                'arrivals': self.arrivals,
                'in_flight': sum(1 for req in self._pending if not req.dead),
                'queue_length': len(self.queue.items),
                'in_service': self.current is not None,
            }

    def _produce(self):
        interval = 1.0 / self.rate
        next_arrival = time.monotonic() + interval
        while not self._stop.is_set():
            delay = next_arrival - time.monotonic()
            if delay > 0 and self._stop.wait(delay):
                break
            next_arrival += interval
            self._arrive()

    def _arrive(self):
        with self.lock:
            request_id = self.arrivals
            self.arrivals += 1

        req = RealTimeRequest(request_id, self.work() * self.time_unit, self.timeout_seconds)
        req.timer = threading.Timer(req.timeout_seconds, self._resolve, args=(req, TIMEOUT))
        req.timer.daemon = True

        if not self.queue.push(req):
            with self.lock:
                self.counter.rejections += 1
            log.debug("Request %d rejected, queue full", request_id)
            return

        with self.lock:
            self._pending = [r for r in self._pending if not r.dead]
            self._pending.append(req)
            # stop() may already have cancelled the pending timers
            stopped = self._stop.is_set()
        if stopped:
            req.resolved.set()
            log.debug("Request %d admitted after stop, left in flight", request_id)
            return
        req.timer.start()
        log.debug("Request %d admitted", request_id)

    def _consume(self):
        while not self._stop.is_set():
            req = self.queue.pop()
            if req is None:
                self._stop.wait(self.poll_interval)
                continue

            with self.lock:
                self.current = req
            # Service ends early if the timeout fires or the run stops
            cancelled = req.resolved.wait(max(0.0, req.work_seconds))
            if not cancelled:
                self._resolve(req, SUCCESS)
            with self.lock:
                self.current = None

    def _resolve(self, req, outcome) -> bool:
        """
        Record the outcome of a request unless one is already recorded.

        Returns True if this call decided the outcome.
        """
        with self.lock:
            if req.dead:
                return False
            req.outcome = outcome
            if outcome == SUCCESS:
                self.counter.successes += 1
            else:
                self.counter.timeouts += 1
        req.resolved.set()
        if outcome == SUCCESS and req.timer is not None:
            req.timer.cancel()
        log.debug("Request %d resolved: %s", req.id, outcome)
        return True
