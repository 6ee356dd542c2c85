import io
import json
import math
import os
import tempfile
import unittest
from unittest.mock import patch

import matplotlib
matplotlib.use('Agg')

from queue_config import PopMethod
from queue_simulation import Result
from visualize_results import (
    METHODS, calculate_statistics, create_availability_plot, create_outcome_breakdown,
    create_summary_table, run_sweep, save_raw_data,
)


class TestSweep(unittest.TestCase):
    """Test the parameter sweep and its outputs"""

    def setUp(self):
        with patch('sys.stdout', new_callable=io.StringIO):
            self.sweep = run_sweep('size', [1, 5], ticks=2000, num_runs=2, seed=3)
        self.stats = calculate_statistics(self.sweep)

    def test_sweep_structure(self):
        self.assertEqual(set(self.sweep), set(METHODS))
        for by_value in self.sweep.values():
            self.assertEqual(sorted(by_value), [1, 5])
            for results in by_value.values():
                self.assertEqual(len(results), 2)
                self.assertTrue(all(isinstance(r, Result) for r in results))

    def test_methods_see_same_arrivals(self):
        totals = {m: sum(r.total() for r in self.sweep[m][5]) for m in METHODS}
        # Arrivals are identical; only requests still in flight differ
        self.assertLessEqual(max(totals.values()) - min(totals.values()), 2 * (5 + 1))

    def test_statistics(self):
        for method in METHODS:
            for value in (1, 5):
                s = self.stats[method][value]
                self.assertTrue(0.0 <= s['availability_mean'] <= 1.0)
                self.assertAlmostEqual(s['success_share'] + s['timeout_share'] + s['rejection_share'], 1.0)

    def test_statistics_skip_empty_runs(self):
        stats = calculate_statistics({PopMethod.FIFO: {1: [Result(), Result(1, 1, 0)]}})
        self.assertEqual(stats[PopMethod.FIFO][1]['runs'], 1)
        self.assertAlmostEqual(stats[PopMethod.FIFO][1]['availability_mean'], 0.5)

        stats = calculate_statistics({PopMethod.FIFO: {1: [Result()]}})
        self.assertTrue(math.isnan(stats[PopMethod.FIFO][1]['availability_mean']))

    def test_unknown_parameter(self):
        with self.assertRaises(ValueError):
            run_sweep('method', ['FIFO'])

    def test_artifacts_written(self):
        with tempfile.TemporaryDirectory() as tmp:
            with patch('sys.stdout', new_callable=io.StringIO):
                create_availability_plot(self.stats, 'size', tmp)
                create_outcome_breakdown(self.stats, 'size', tmp)
                create_summary_table(self.stats, 'size', tmp)
            save_raw_data(self.sweep, 'size', tmp)

            for name in ('availability_vs_size.png', 'outcomes_vs_size.png',
                         'summary_size.txt', 'sweep_size.json'):
                self.assertTrue(os.path.exists(os.path.join(tmp, name)), name)

            with open(os.path.join(tmp, 'sweep_size.json')) as f:
                data = json.load(f)
            self.assertEqual(data['param'], 'size')
            self.assertEqual(set(data['results']), {'FIFO', 'FILO', 'RANDOM'})
            self.assertEqual(len(data['results']['FIFO']['1']), 2)


if __name__ == '__main__':
    unittest.main(verbosity=2)
