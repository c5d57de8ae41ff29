from __future__ import annotations

import fire
import numpy as np
from sim import time_sim_reset, time_sim_step, time_worker_tick


def print_benchmark_results(name: str, timings: list[float], dt: float = 0.005):
    print(f"\nResults for {name}:")
    print(f"Mean/std: {np.mean(timings):.2e}s +- {np.std(timings):.2e}s")
    print(f"Min time: {np.min(timings):.2e}s")
    print(f"Max time: {np.max(timings):.2e}s")
    print(f"Steps/s: {1 / np.mean(timings):.2f} (real time factor {dt / np.mean(timings):.1f})")


def main(
    n_tests: int = 2,
    number: int = 1000,
    reset: bool = True,
    step: bool = True,
    worker: bool = True,
    publish_every: int = 3,
):
    if reset:
        timings = time_sim_reset(n_tests=n_tests, number=number)
        print_benchmark_results(name="Simulator reset", timings=timings / number)
    if step:
        timings = time_sim_step(n_tests=n_tests, number=number)
        print_benchmark_results(name="Simulator steps", timings=timings / number)
    if worker:
        timings = time_worker_tick(n_tests=n_tests, number=number, publish_every=publish_every)
        print_benchmark_results(
            name=f"Worker ticks (publish every {publish_every})", timings=timings / number
        )


if __name__ == "__main__":
    fire.Fire(main)
