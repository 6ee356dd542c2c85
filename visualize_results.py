import json
import os

import matplotlib.pyplot as plt
import numpy as np

from queue_config import DEFAULTS, PopMethod, SimulationConfig
from simulation import run_simulation
from work_generators import make_work


METHODS = [PopMethod.FIFO, PopMethod.FILO, PopMethod.RANDOM]
COLORS = {PopMethod.FIFO: '#ff7f7f', PopMethod.FILO: '#7f7fff', PopMethod.RANDOM: '#7fff7f'}

BASE_PARAMS = {
    'size': DEFAULTS['size'],
    'rate': DEFAULTS['rate'],
    'timeout': DEFAULTS['timeout'],
    'work': DEFAULTS['work'],
}


def run_sweep(param, values, base_params=None, ticks=10000, num_runs=5, seed=0,
              work_dist='doubling'):
    """
    Run every pop method for every value of one parameter.

    `param` is one of size, rate, timeout or work; the others come from
    base_params. Each (method, value) pair is run num_runs times with seeds
    seed, seed + 1, ... so the methods see identical work draws.

    Returns {method: {value: [Result, ...]}}.
    """
    params = dict(BASE_PARAMS if base_params is None else base_params)
    if param not in params:
        raise ValueError(f"Unknown sweep parameter: {param}")

    sweep = {method: {} for method in METHODS}
    for value in values:
        params[param] = value
        print(f"  {param}={value}")
        for method in METHODS:
            results = []
            for run in range(num_runs):
                config = SimulationConfig(
                    size=params['size'],
                    rate=params['rate'],
                    timeout=params['timeout'],
                    work=make_work(work_dist, params['work'], seed=seed + run),
                    method=method,
                    seed=seed + run,
                )
                sim = run_simulation(config, ticks)
                results.append(sim.counter)
            sweep[method][value] = results
    return sweep


def calculate_statistics(sweep):
    """Mean and standard deviation of availability per method and value.

    Runs without any resolved request (NaN availability) are left out.
    """
    stats = {}
    for method, by_value in sweep.items():
        method_stats = {}
        for value, results in by_value.items():
            availabilities = [r.availability() for r in results]
            availabilities = [a for a in availabilities if not np.isnan(a)]
            totals = sum(r.total() for r in results)
            method_stats[value] = {
                'availability_mean': float(np.mean(availabilities)) if availabilities else float('nan'),
                'availability_std': float(np.std(availabilities)) if availabilities else float('nan'),
                'success_share': sum(r.successes for r in results) / totals if totals else 0.0,
                'timeout_share': sum(r.timeouts for r in results) / totals if totals else 0.0,
                'rejection_share': sum(r.rejections for r in results) / totals if totals else 0.0,
                'runs': len(availabilities),
            }
        stats[method] = method_stats
    return stats


def create_availability_plot(stats, param, save_path='results'):
    """Availability against the swept parameter, one line per method"""

    plt.figure(figsize=(8, 5))

    for method in METHODS:
        values = sorted(stats[method])
        means = [100 * stats[method][v]['availability_mean'] for v in values]
        stds = [100 * stats[method][v]['availability_std'] for v in values]
        plt.errorbar(values, means, yerr=stds, marker='o', capsize=4,
                     color=COLORS[method], label=method.value)

    plt.title(f'Availability vs {param}')
    plt.xlabel(param)
    plt.ylabel('Availability (%)')
    plt.ylim(0, 105)
    plt.grid(True, alpha=0.3)
    plt.legend()

    plt.tight_layout()
    plt.savefig(f'{save_path}/availability_vs_{param}.png', dpi=300, bbox_inches='tight')
    plt.close()


def create_outcome_breakdown(stats, param, save_path='results'):
    """Stacked shares of successes, timeouts and rejections per method"""

    fig, axes = plt.subplots(1, len(METHODS), figsize=(15, 5), sharey=True)

    for ax, method in zip(axes, METHODS):
        values = sorted(stats[method])
        labels = [str(v) for v in values]
        successes = np.array([stats[method][v]['success_share'] for v in values])
        timeouts = np.array([stats[method][v]['timeout_share'] for v in values])
        rejections = np.array([stats[method][v]['rejection_share'] for v in values])

        ax.bar(labels, successes, color='#7fbf7f', label='Successes')
        ax.bar(labels, timeouts, bottom=successes, color='#ffbf7f', label='Timeouts')
        ax.bar(labels, rejections, bottom=successes + timeouts, color='#ff7f7f', label='Rejections')
        ax.set_title(f'{method.value} Outcomes')
        ax.set_xlabel(param)
        ax.grid(True, alpha=0.3)

    axes[0].set_ylabel('Share of resolved requests')
    axes[-1].legend()

    plt.tight_layout()
    plt.savefig(f'{save_path}/outcomes_vs_{param}.png', dpi=300, bbox_inches='tight')
    plt.close(fig)


def create_summary_table(stats, param, save_path='results'):
    """Print and save availability per method and parameter value"""

    values = sorted(next(iter(stats.values())))

    lines = []
    lines.append(f"{param:<10} " + " ".join(f"{m.value:<18}" for m in METHODS))
    lines.append("-" * (11 + 19 * len(METHODS)))
    for value in values:
        row = f"{value:<10} "
        for method in METHODS:
            s = stats[method][value]
            if np.isnan(s['availability_mean']):
                cell = "n/a"
            else:
                cell = f"{100 * s['availability_mean']:.2f} ± {100 * s['availability_std']:.2f}%"
            row += f"{cell:<18} "
        lines.append(row.rstrip())

    print("\n" + "=" * 70)
    print(f"AVAILABILITY BY {param.upper()}")
    print("=" * 70)
    for line in lines:
        print(line)

    with open(f'{save_path}/summary_{param}.txt', 'w', encoding='utf-8') as f:
        f.write(f"AVAILABILITY BY {param.upper()}\n")
        f.write("\n".join(lines) + "\n")


def save_raw_data(sweep, param, save_path='results'):
    """Save raw counters for further analysis"""

    serializable = {}
    for method, by_value in sweep.items():
        serializable[method.value] = {
            str(value): [r.as_dict() for r in results]
            for value, results in by_value.items()
        }

    # NaN is written as a bare NaN token, which json.load reads back
    with open(f'{save_path}/sweep_{param}.json', 'w') as f:
        json.dump({'param': param, 'results': serializable}, f, indent=2)


def main():
    """Main visualization pipeline"""

    save_path = 'results'
    os.makedirs(save_path, exist_ok=True)

    print("queuesim - Availability Sweeps")
    print("=" * 60)

    sweeps = {
        'size': [1, 2, 5, 10, 20],
        'timeout': [25, 50, 100, 200, 400],
    }

    for param, values in sweeps.items():
        print(f"\nSweeping {param}...")
        sweep = run_sweep(param, values, ticks=20000, num_runs=5)
        stats = calculate_statistics(sweep)

        create_availability_plot(stats, param, save_path)
        create_outcome_breakdown(stats, param, save_path)
        create_summary_table(stats, param, save_path)
        save_raw_data(sweep, param, save_path)

    print(f"\nAll results saved to '{save_path}/' directory")


if __name__ == '__main__':
    main()
