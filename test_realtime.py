import random
import threading
import time
import unittest

from queue_config import ConfigurationError, PopMethod, SimulationConfig
from realtime import SUCCESS, TIMEOUT, RealTimeQueue, RealTimeRequest, RealTimeSimulation


def make_config(size=5, rate=100, timeout=100, work=1, method=PopMethod.FIFO, seed=None):
    return SimulationConfig(size=size, rate=rate, timeout=timeout, work=lambda: work,
                            method=method, seed=seed)


class TestRealTimeQueue(unittest.TestCase):
    """Test the lock-guarded queue shared by producer and consumer"""

    def setUp(self):
        self.lock = threading.Lock()

    def make_queue(self, size=3, method=PopMethod.FIFO):
        return RealTimeQueue(size, method, self.lock, random.Random(0))

    def test_push_rejects_when_full(self):
        queue = self.make_queue(size=2)
        self.assertTrue(queue.push(RealTimeRequest(0, 1, 1)))
        self.assertTrue(queue.push(RealTimeRequest(1, 1, 1)))
        self.assertFalse(queue.push(RealTimeRequest(2, 1, 1)))
        self.assertEqual(len(queue), 2)

    def test_push_prunes_dead_requests(self):
        """A timed out request frees its slot on the next push"""
        queue = self.make_queue(size=1)
        dead = RealTimeRequest(0, 1, 1)
        queue.push(dead)
        dead.outcome = TIMEOUT
        self.assertTrue(queue.push(RealTimeRequest(1, 1, 1)))
        self.assertEqual([r.id for r in queue.items], [1])

    def test_pop_skips_dead_requests(self):
        queue = self.make_queue()
        reqs = [RealTimeRequest(i, 1, 1) for i in range(3)]
        for req in reqs:
            queue.push(req)
        reqs[0].outcome = TIMEOUT
        self.assertEqual(queue.pop().id, 1)

    def test_pop_empty_returns_none(self):
        self.assertIsNone(self.make_queue().pop())

    def test_pop_order(self):
        for method, expected in ((PopMethod.FIFO, [0, 1, 2]), (PopMethod.FILO, [2, 1, 0])):
            with self.subTest(method=method):
                queue = self.make_queue(method=method)
                for i in range(3):
                    queue.push(RealTimeRequest(i, 1, 1))
                self.assertEqual([queue.pop().id for _ in range(3)], expected)

    def test_random_pop_drains_everything(self):
        queue = self.make_queue(method=PopMethod.RANDOM)
        for i in range(3):
            queue.push(RealTimeRequest(i, 1, 1))
        self.assertEqual(sorted(queue.pop().id for _ in range(3)), [0, 1, 2])
        self.assertIsNone(queue.pop())


class TestOutcomeRace(unittest.TestCase):
    """Exactly one of success or timeout is recorded per request"""

    def setUp(self):
        self.sim = RealTimeSimulation(make_config())

    def test_timeout_first(self):
        req = RealTimeRequest(0, 1, 1)
        self.assertTrue(self.sim._resolve(req, TIMEOUT))
        self.assertFalse(self.sim._resolve(req, SUCCESS))
        self.assertEqual(req.outcome, TIMEOUT)
        self.assertTrue(req.resolved.is_set())
        self.assertEqual(self.sim.counter.timeouts, 1)
        self.assertEqual(self.sim.counter.successes, 0)

    def test_success_first_cancels_timer(self):
        req = RealTimeRequest(0, 1, 0.05)
        req.timer = threading.Timer(req.timeout_seconds, self.sim._resolve, args=(req, TIMEOUT))
        req.timer.start()
        self.assertTrue(self.sim._resolve(req, SUCCESS))
        time.sleep(0.1)
        self.assertEqual(req.outcome, SUCCESS)
        self.assertEqual(self.sim.counter.successes, 1)
        self.assertEqual(self.sim.counter.timeouts, 0)

    def test_concurrent_resolution(self):
        reqs = [RealTimeRequest(i, 1, 1) for i in range(200)]
        barrier = threading.Barrier(2)

        def resolve_all(outcome):
            barrier.wait()
            for req in reqs:
                self.sim._resolve(req, outcome)

        threads = [threading.Thread(target=resolve_all, args=(o,)) for o in (SUCCESS, TIMEOUT)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(self.sim.counter.successes + self.sim.counter.timeouts, 200)


class TestRealTimeSimulation(unittest.TestCase):
    """Short wall-clock runs; only the shape of the results is checked"""

    def test_invalid_configuration(self):
        with self.assertRaises(ConfigurationError):
            RealTimeSimulation(make_config(method="LIFO"))
        with self.assertRaises(ConfigurationError):
            RealTimeSimulation(make_config(rate=0))
        with self.assertRaises(ConfigurationError):
            RealTimeSimulation(make_config(), time_unit=0)

    def test_fast_service_succeeds(self):
        sim = RealTimeSimulation(make_config(size=10, rate=50, timeout=500, work=1))
        result = sim.run(0.5)
        self.assertGreater(result.successes, 5)
        self.assertEqual(result.rejections, 0)

        metrics = sim.get_metrics()
        self.assertEqual(metrics['successes'] + metrics['timeouts'] + metrics['rejections']
                         + metrics['in_flight'], metrics['arrivals'])

    def test_slow_service_times_out(self):
        """Work far beyond the timeout never succeeds"""
        sim = RealTimeSimulation(make_config(size=1, rate=100, timeout=5, work=1000))
        result = sim.run(0.4)
        self.assertEqual(result.successes, 0)
        self.assertGreater(result.timeouts + result.rejections, 0)

        metrics = sim.get_metrics()
        self.assertEqual(metrics['timeouts'] + metrics['rejections'] + metrics['in_flight'],
                         metrics['arrivals'])

    def test_arrival_during_stop_stays_in_flight(self):
        """A request admitted while stopping never times out after the run"""
        sim = RealTimeSimulation(make_config(rate=1000, timeout=20, work=10000))
        entered = threading.Event()
        push = sim.queue.push

        def slow_push(req):
            entered.set()
            time.sleep(0.05)
            return push(req)

        sim.queue.push = slow_push
        sim.start()
        self.assertTrue(entered.wait(1.0))
        sim.stop()

        before = sim.snapshot()
        time.sleep(0.2)
        self.assertEqual(sim.snapshot(), before)

        metrics = sim.get_metrics()
        self.assertGreaterEqual(metrics['in_flight'], 1)
        self.assertEqual(metrics['successes'] + metrics['timeouts'] + metrics['rejections']
                         + metrics['in_flight'], metrics['arrivals'])

    def test_stop_leaves_threads_finished(self):
        sim = RealTimeSimulation(make_config(rate=100, timeout=10000, work=10000))
        sim.run(0.1)
        for t in sim._threads:
            self.assertFalse(t.is_alive())


if __name__ == '__main__':
    unittest.main(verbosity=2)
