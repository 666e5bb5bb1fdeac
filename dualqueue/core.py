"""Multi-threaded consumer/producer with a high- and a low-priority queue.

High-priority jobs are always taken first and are always handed to the
consumer as *preferred*. A low-priority job is preferred when, at the moment
it is taken, the low-priority queue holds no more than ``prefer_queue_size``
jobs. A ``prefer_queue_size`` of zero switches the low queue to blocking mode:
producers wait for room instead of discarding jobs.
"""

from __future__ import annotations

import os
import sys
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

ConsumeFunc = Callable[[T, bool], object]


@dataclass
class Config:
    """Settings for a :class:`ConsumerProducer`."""

    name: str = ""
    priority: int = 0
    worker_num: int = 1
    queue_size: int = 16
    prefer_queue_size: int = 0
    hi_queue_size: int = 4
    cpu_set: frozenset[int] | None = None

    def __post_init__(self) -> None:
        if self.worker_num < 0:
            raise ValueError("worker_num must not be negative")
        if self.queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        if self.hi_queue_size < 1:
            raise ValueError("hi_queue_size must be at least 1")
        if self.prefer_queue_size < 0:
            raise ValueError("prefer_queue_size must not be negative")


class EnqueueResult(IntEnum):
    """Outcome of adding a job."""

    NORMAL = 0
    BLOCKED = 1
    DISCARD_SELF = 2
    DISCARD_HEAD = 3


class _Lane(IntEnum):
    LOW = 0
    HIGH = 1


@dataclass
class _Job(Generic[T]):
    payload: T
    timestamp: int
    id: int
    not_discardable: bool


@dataclass
class _LaneStats:
    added: int = 0
    finished: int = 0
    dropped: int = 0
    blocked: int = 0
    last_id: int = 0
    finished_id: int = 0
    wait_ns: int = 0
    process_ns: int = 0
    drop_ns: int = 0


@dataclass
class _LaneState(Generic[T]):
    capacity: int
    queue: deque = field(default_factory=deque)
    stats: _LaneStats = field(default_factory=_LaneStats)

    @property
    def full(self) -> bool:
        return len(self.queue) >= self.capacity


def _apply_thread_priority(priority: int) -> None:
    if priority == 0 or not hasattr(os, "sched_setscheduler"):
        return
    tid = threading.get_native_id()
    try:
        if priority > 0:
            current = os.sched_getparam(tid).sched_priority
            os.sched_setscheduler(
                tid, os.SCHED_FIFO, os.sched_param(min(current + priority, 99))
            )
        elif sys.platform.startswith("linux") and hasattr(os, "SCHED_IDLE"):
            os.sched_setscheduler(tid, os.SCHED_IDLE, os.sched_param(0))
    except OSError:
        pass


def _apply_affinity(cpu_set: frozenset[int] | None) -> None:
    if not cpu_set or not hasattr(os, "sched_setaffinity"):
        return
    try:
        os.sched_setaffinity(threading.get_native_id(), cpu_set)
    except OSError:
        pass


class ConsumerProducer(Generic[T]):
    """A pool of worker threads fed from two bounded priority queues."""

    def __init__(self, config: Config, consume: ConsumeFunc) -> None:
        self._config = config
        self._consume = consume
        self._blocking_mode = config.prefer_queue_size == 0
        self._lanes = {
            _Lane.LOW: _LaneState(config.queue_size),
            _Lane.HIGH: _LaneState(config.hi_queue_size),
        }
        self._lock = threading.Lock()
        self._not_full = threading.Condition(self._lock)
        self._not_empty = threading.Condition(self._lock)
        self._job_done = threading.Condition(self._lock)
        self._threads: list[threading.Thread] = []
        self._shutdown = True
        self._paused = False
        self._started = False
        self._max_queue_length = 0
        self._pid = 0
        self._start_time = time.monotonic_ns()

    def __enter__(self) -> "ConsumerProducer[T]":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown()

    @property
    def name(self) -> str:
        return self._config.name

    def start(self) -> None:
        """Start the worker threads."""
        with self._lock:
            self._shutdown = False
            self._started = True
        for index in range(self._config.worker_num):
            thread = threading.Thread(
                target=self._consumer_loop,
                name=f"{self._config.name or 'worker'}-{index}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

    def shutdown(self) -> None:
        """Stop the workers once the queues are drained and wait for them."""
        with self._lock:
            self._shutdown = True
            self._not_empty.notify_all()
            self._not_full.notify_all()
            self._job_done.notify_all()
        current = threading.current_thread()
        for thread in self._threads:
            if thread is not current:
                thread.join()
        self._threads.clear()

    def add_job(
        self, job: T, high_priority: bool = False, not_discardable: bool = False
    ) -> EnqueueResult:
        """Queue a job; block or discard when the queue is full."""
        result, _ = self._enqueue(job, high_priority, not_discardable)
        return result

    def add_job_wait_done(self, job: T, high_priority: bool = False) -> EnqueueResult:
        """Queue a job that cannot be discarded and wait until it is handled."""
        result, job_id = self._enqueue(job, high_priority, True)
        stats = self._lanes[_Lane.HIGH if high_priority else _Lane.LOW].stats
        with self._lock:
            self._job_done.wait_for(
                lambda: job_id <= stats.finished_id or self._shutdown
            )
        return result

    def flush_and_pause(self) -> None:
        """Stop accepting jobs and wait until every queued job is handled."""
        with self._lock:
            self._paused = True
            self._job_done.wait_for(
                lambda: self._total_added() == self._total_done() or self._shutdown
            )

    def resume(self) -> None:
        """Accept jobs again after :meth:`flush_and_pause`."""
        with self._lock:
            self._paused = False
            self._not_full.notify_all()

    def queue_length(self) -> int:
        """Current number of jobs in the low-priority queue."""
        with self._lock:
            return len(self._lanes[_Lane.LOW].queue)

    def max_queue_length(self) -> int:
        """Largest low-priority queue length seen after an enqueue."""
        with self._lock:
            return self._max_queue_length

    def dropped_job_count(self) -> int:
        """Jobs handed to the consumer as not preferred, over both queues."""
        with self._lock:
            return sum(lane.stats.dropped for lane in self._lanes.values())

    def blocked_job_count(self) -> int:
        """Jobs whose producer had to wait for room, over both queues."""
        with self._lock:
            return sum(lane.stats.blocked for lane in self._lanes.values())

    def stats_string(self) -> str:
        """One line of statistics per queue that has received jobs."""
        lines = []
        with self._lock:
            for lane in (_Lane.LOW, _Lane.HIGH):
                s = self._lanes[lane].stats
                if s.added == 0:
                    continue
                done = s.finished + s.dropped
                avg_wait = s.wait_ns // done // 1000 if done else 0
                avg_proc = s.process_ns // s.finished // 1000 if s.finished else 0
                avg_drop = s.drop_ns // s.dropped // 1000 if s.dropped else 0
                lines.append(
                    f"{self._config.name} q#{int(lane)} added={s.added} "
                    f"finished={s.finished} dropped={s.dropped} blocked={s.blocked} "
                    f"wait={avg_wait}us proc={avg_proc}us drop={avg_drop}us "
                    f"pid={self._pid}\n"
                )
        return "".join(lines)

    def print_stats(self) -> None:
        """Write the statistics to standard output."""
        text = self.stats_string()
        if text:
            sys.stdout.write(text)

    def _total_added(self) -> int:
        return sum(lane.stats.added for lane in self._lanes.values())

    def _total_done(self) -> int:
        return sum(
            lane.stats.finished + lane.stats.dropped for lane in self._lanes.values()
        )

    def _enqueue(
        self, payload: T, high_priority: bool, not_discardable: bool
    ) -> tuple[EnqueueResult, int]:
        lane_key = _Lane.HIGH if high_priority else _Lane.LOW
        lane = self._lanes[lane_key]
        need_blocking = high_priority or self._blocking_mode or not_discardable
        timestamp = time.monotonic_ns()
        job_id = 0
        result = EnqueueResult.NORMAL

        while True:
            with self._lock:
                if self._paused:
                    self._not_full.wait_for(lambda: not self._paused or self._shutdown)
                    if self._shutdown:
                        break
                    continue

                if not lane.full:
                    lane.stats.last_id += 1
                    job_id = lane.stats.last_id
                    lane.queue.append(
                        _Job(payload, timestamp, job_id, not_discardable)
                    )
                    self._max_queue_length = max(
                        self._max_queue_length, len(self._lanes[_Lane.LOW].queue)
                    )
                    lane.stats.added += 1
                    self._not_empty.notify()
                    break

                if need_blocking:
                    result = EnqueueResult.BLOCKED
                    self._not_full.wait_for(lambda: not lane.full or self._shutdown)
                    if self._shutdown:
                        break
                    continue

                head = lane.queue[0]
                if not head.not_discardable:
                    lane.queue.popleft()
                    lane.stats.dropped += 1
                    lane.stats.finished_id = head.id
                    victim = head
                else:
                    lane.stats.added += 1
                    lane.stats.dropped += 1
                    victim = None

            if victim is not None:
                self._consume(victim.payload, False)
                with self._lock:
                    self._job_done.notify_all()
                result = EnqueueResult.DISCARD_HEAD
                continue

            self._consume(payload, False)
            result = EnqueueResult.DISCARD_SELF
            break

        if result is EnqueueResult.BLOCKED:
            with self._lock:
                lane.stats.blocked += 1
        return result, job_id

    def _next_job(self) -> tuple[_Job, _Lane, int] | None:
        with self._lock:
            while True:
                self._not_empty.wait_for(
                    lambda: any(lane.queue for lane in self._lanes.values())
                    or self._shutdown
                )
                for key in (_Lane.HIGH, _Lane.LOW):
                    queue = self._lanes[key].queue
                    if queue:
                        count = len(queue)
                        job = queue.popleft()
                        self._not_full.notify_all()
                        return job, key, count
                if self._shutdown:
                    self._not_empty.notify_all()
                    return None

    def _consumer_loop(self) -> None:
        _apply_affinity(self._config.cpu_set)
        with self._lock:
            self._pid = threading.get_native_id()
        priority = self._config.priority
        _apply_thread_priority(priority)

        while (taken := self._next_job()) is not None:
            job, key, count = taken
            popped = time.monotonic_ns()
            preferred = key is _Lane.HIGH or count <= self._config.prefer_queue_size
            self._consume(job.payload, preferred)
            done = time.monotonic_ns()

            stats = self._lanes[key].stats
            with self._lock:
                stats.wait_ns += popped - job.timestamp
                if preferred:
                    stats.process_ns += done - popped
                    stats.finished += 1
                else:
                    stats.drop_ns += done - popped
                    stats.dropped += 1
                stats.finished_id = job.id
                self._job_done.notify_all()

            if priority > 0:
                time.sleep(0)