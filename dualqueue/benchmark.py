"""Throughput, latency and priority measurements for the consumer/producer."""

from __future__ import annotations

import argparse
import threading
import time
from dataclasses import dataclass

from dualqueue.core import Config, ConsumerProducer

_HIGH_ID_BASE = 10000


@dataclass
class _BenchJob:
    enqueue_time: int = 0
    id: int = 0


@dataclass(frozen=True)
class LatencyReport:
    """Enqueue-to-consume latency percentiles in nanoseconds."""

    samples: int
    p50: int
    p95: int
    p99: int
    max: int


@dataclass(frozen=True)
class PriorityReport:
    """Counts gathered while mixing high- and low-priority jobs."""

    high_processed: int
    high_preferred: int
    low_processed: int


class _Counter:
    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            current = self._value
            self._value += 1
            return current

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


def _rate(jobs: int, elapsed_ns: int) -> float:
    return jobs / (max(elapsed_ns, 1) / 1e9)


def bench_spsc(job_count: int = 100000) -> float:
    """Jobs per second with one producer and one consumer."""
    if job_count < 1:
        raise ValueError("job_count must be at least 1")
    consumed = _Counter()
    config = Config(name="spsc", worker_num=1, queue_size=1024, hi_queue_size=16)
    cp: ConsumerProducer[_BenchJob] = ConsumerProducer(
        config, lambda job, preferred: consumed.increment()
    )
    cp.start()
    start = time.perf_counter_ns()
    for _ in range(job_count):
        cp.add_job(_BenchJob(), False, True)
    cp.shutdown()
    return _rate(job_count, time.perf_counter_ns() - start)


def bench_multi_producer(
    num_producers: int, num_workers: int, jobs_per_producer: int = 25000
) -> float:
    """Jobs per second with several producer threads and worker threads."""
    if num_producers < 1 or jobs_per_producer < 1:
        raise ValueError("at least one producer and one job are required")
    consumed = _Counter()
    config = Config(
        name="mp", worker_num=num_workers, queue_size=1024, hi_queue_size=64
    )
    cp: ConsumerProducer[_BenchJob] = ConsumerProducer(
        config, lambda job, preferred: consumed.increment()
    )
    cp.start()
    start = time.perf_counter_ns()

    def produce() -> None:
        for _ in range(jobs_per_producer):
            cp.add_job(_BenchJob(), False, True)

    producers = [threading.Thread(target=produce) for _ in range(num_producers)]
    for thread in producers:
        thread.start()
    for thread in producers:
        thread.join()
    cp.shutdown()
    return _rate(num_producers * jobs_per_producer, time.perf_counter_ns() - start)


def bench_latency_distribution(samples: int = 50000) -> LatencyReport:
    """Measure the delay between enqueueing a job and consuming it."""
    if samples < 1:
        raise ValueError("samples must be at least 1")
    latencies = [0] * samples
    index = _Counter()

    def consume(job: _BenchJob, preferred: bool) -> int:
        now = time.perf_counter_ns()
        slot = index.increment()
        if slot < samples:
            latencies[slot] = now - job.enqueue_time
        return 0

    config = Config(name="latency", worker_num=1, queue_size=256, hi_queue_size=16)
    cp: ConsumerProducer[_BenchJob] = ConsumerProducer(config, consume)
    cp.start()
    for i in range(samples):
        cp.add_job(_BenchJob(time.perf_counter_ns(), i), False, True)
        if i % 100 == 0:
            time.sleep(10e-6)
    cp.shutdown()

    n = min(index.value, samples)
    ordered = sorted(latencies[:n])

    def percentile(pct: float) -> int:
        return ordered[int(pct / 100.0 * (n - 1))]

    return LatencyReport(
        samples=n,
        p50=percentile(50),
        p95=percentile(95),
        p99=percentile(99),
        max=ordered[n - 1],
    )


def bench_priority_scheduling(
    low_jobs: int = 1000, high_jobs: int = 100
) -> PriorityReport:
    """Interleave one high-priority job after every tenth low-priority job."""
    lock = threading.Lock()
    counts = {"high": 0, "high_preferred": 0, "low": 0}

    def consume(job: _BenchJob, preferred: bool) -> int:
        with lock:
            if job.id >= _HIGH_ID_BASE:
                counts["high"] += 1
                if preferred:
                    counts["high_preferred"] += 1
            else:
                counts["low"] += 1
        return 0

    config = Config(name="prio_bench", worker_num=1, queue_size=256, hi_queue_size=64)
    cp: ConsumerProducer[_BenchJob] = ConsumerProducer(config, consume)
    cp.start()
    for i in range(low_jobs):
        cp.add_job(_BenchJob(id=i), False, True)
        if i % 10 == 0 and i // 10 < high_jobs:
            cp.add_job(_BenchJob(id=_HIGH_ID_BASE + i // 10), True)
    cp.shutdown()
    return PriorityReport(counts["high"], counts["high_preferred"], counts["low"])


def main(argv: list[str] | None = None) -> int:
    """Run every benchmark and print a report."""
    parser = argparse.ArgumentParser(description="Benchmark the consumer/producer.")
    parser.add_argument(
        "--scale", type=float, default=1.0, help="multiplier for all job counts"
    )
    args = parser.parse_args(argv)
    if args.scale <= 0:
        parser.error("--scale must be positive")

    def scaled(count: int) -> int:
        return max(1, int(count * args.scale))

    rule = "=" * 40
    print(rule)
    print("  ConsumerProducer Benchmark Report")
    print(rule)
    print()

    spsc_jobs = scaled(100000)
    print(f"[1] Single-producer single-consumer ({spsc_jobs} jobs)")
    print(f"  1P x 1C: {bench_spsc(spsc_jobs) / 1e3:8.2f} K jobs/sec")
    print()

    per_producer = scaled(25000)
    print(f"[2] Multi-producer throughput ({per_producer} jobs/producer)")
    for producers, workers in ((1, 1), (2, 1), (4, 1), (4, 2), (4, 4)):
        rate = bench_multi_producer(producers, workers, per_producer)
        print(f"  {producers}P x {workers}C: {rate / 1e3:8.2f} K jobs/sec")
    print()

    latency_samples = scaled(50000)
    print(f"[3] Enqueue-to-consume latency ({latency_samples} samples)")
    report = bench_latency_distribution(latency_samples)
    print(f"  P50:  {report.p50:8d} ns")
    print(f"  P95:  {report.p95:8d} ns")
    print(f"  P99:  {report.p99:8d} ns")
    print(f"  Max:  {report.max:8d} ns")
    print()

    print("[4] Priority scheduling verification")
    prio = bench_priority_scheduling(scaled(1000), scaled(100))
    print(
        f"  High-prio processed: {prio.high_processed} "
        f"(preferred: {prio.high_preferred})"
    )
    print(f"  Low-prio  processed: {prio.low_processed}")
    print()
    print(rule)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())