"""Small demonstrations of :class:`dualqueue.core.ConsumerProducer`."""

from __future__ import annotations

import argparse
import threading
import time
from dataclasses import dataclass

from dualqueue.core import Config, ConsumerProducer


@dataclass
class Task:
    """A job carrying an identifier and a text payload."""

    id: int
    data: str


@dataclass
class PrioTask:
    """A job that remembers which queue it was sent to."""

    id: int
    high: bool


def run_basic(job_count: int = 20) -> list[tuple[int, str, bool]]:
    """Feed ``job_count`` tasks through two workers, printing each one.

    Returns ``(id, data, preferred)`` for every task in the order handled.
    """
    handled: list[tuple[int, str, bool]] = []
    lock = threading.Lock()

    def consume(task: Task, preferred: bool) -> int:
        tag = "PREF" if preferred else "DROP"
        with lock:
            print(f"[{tag}] Task {task.id}: {task.data}")
            handled.append((task.id, task.data, preferred))
        return 0

    config = Config(name="demo", worker_num=2, queue_size=32, hi_queue_size=8)
    producer: ConsumerProducer[Task] = ConsumerProducer(config, consume)
    producer.start()
    for i in range(job_count):
        producer.add_job(Task(i, f"payload_{i}"))
    producer.shutdown()
    producer.print_stats()
    return handled


def run_priority() -> list[tuple[int, bool, bool]]:
    """Queue five low- and five high-priority tasks on a single slow worker.

    Returns ``(id, high, preferred)`` for every task in the order handled.
    """
    handled: list[tuple[int, bool, bool]] = []
    lock = threading.Lock()

    def consume(task: PrioTask, preferred: bool) -> int:
        tag = "PREF" if preferred else "NORM"
        level = "HI" if task.high else "LO"
        with lock:
            print(f"[{tag}] {level} task {task.id}")
            handled.append((task.id, task.high, preferred))
        time.sleep(0.01)
        return 0

    config = Config(
        name="prio_demo",
        worker_num=1,
        queue_size=16,
        prefer_queue_size=3,
        hi_queue_size=8,
    )
    producer: ConsumerProducer[PrioTask] = ConsumerProducer(config, consume)
    producer.start()
    for i in range(5):
        producer.add_job(PrioTask(i, False), False)
    for i in range(100, 105):
        producer.add_job(PrioTask(i, True), True)
    producer.shutdown()
    producer.print_stats()
    return handled


def main(argv: list[str] | None = None) -> int:
    """Run one of the demonstrations from the command line."""
    parser = argparse.ArgumentParser(description="Run a consumer/producer demo.")
    parser.add_argument(
        "example", nargs="?", default="basic", choices=["basic", "priority"]
    )
    parser.add_argument("--jobs", type=int, default=20, help="jobs for the basic demo")
    args = parser.parse_args(argv)
    if args.example == "basic":
        run_basic(args.jobs)
    else:
        run_priority()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())