# dualqueue

`dualqueue` is a pool of worker threads. Two bounded queues feed the pool: a high-priority queue and a low-priority queue.

- Workers take every high-priority job before any low-priority job.
- A worker passes each job to your consume callback as `consume(job, preferred)`.
- High-priority jobs always arrive with `preferred=True`. The callback counts them as finished.
- A low-priority job arrives with `preferred=True` only when, at the moment a worker takes it, the low-priority queue holds `prefer_queue_size` jobs or fewer (the job itself included). Otherwise it arrives with `preferred=False` and counts as dropped.
- With `prefer_queue_size=0` (the default) the low-priority queue runs in blocking mode. A full queue makes the producer wait for room. Because the queue always holds at least the job being taken, every low-priority job arrives with `preferred=False` in this mode.
- In non-blocking mode (`prefer_queue_size > 0`), a full low-priority queue discards its oldest job, unless that job was queued as not discardable, and then queues the new job. If the oldest job is not discardable, the new job is discarded instead. A discarded job is still passed to the callback with `preferred=False`, in the producer's thread, so the callback can release what the job holds.
- A full high-priority queue always blocks the producer.

## Installation

```
pip install .
```

To install the test dependencies as well, run `pip install .[test]`.

## Usage

```python
from dualqueue.core import Config, ConsumerProducer, EnqueueResult

def consume(job, preferred):
    print("PREF" if preferred else "DROP", job)
    return 0

cfg = Config(name="demo", worker_num=2, queue_size=32, hi_queue_size=8)
cp = ConsumerProducer(cfg, consume)
cp.start()

for i in range(20):
    cp.add_job(f"payload_{i}")

cp.add_job("urgent", high_priority=True)
cp.add_job_wait_done("sync job")   # returns once the job has been handled

cp.flush_and_pause()               # waits until every queued job is handled; new add_job calls wait
cp.resume()

cp.shutdown()                      # workers finish what is queued, then stop
cp.print_stats()
```

`ConsumerProducer` also works as a context manager. Entering the block calls `start()` and leaving it calls `shutdown()`:

```python
with ConsumerProducer(Config(name="ctx"), consume) as cp:
    cp.add_job("job", not_discardable=True)
```

### Configuration

`Config` is a dataclass with these fields:

| Field               | Default | Meaning                                                             |
|---------------------|---------|---------------------------------------------------------------------|
| `name`              | `""`    | Appears in statistics lines and in worker thread names.             |
| `priority`          | `0`     | Above 0: workers ask for `SCHED_FIFO` at that many levels higher (capped at 99) and yield after each job. Below 0: workers ask for `SCHED_IDLE` (Linux only). Failures are ignored. |
| `worker_num`        | `1`     | Number of worker threads.                                           |
| `queue_size`        | `16`    | Capacity of the low-priority queue.                                 |
| `prefer_queue_size` | `0`     | Preference threshold. `0` selects blocking mode.                    |
| `hi_queue_size`     | `4`     | Capacity of the high-priority queue.                                |
| `cpu_set`           | `None`  | CPUs to pin each worker to, where the platform supports it.         |

`Config` raises `ValueError` in any of these cases: `worker_num` is negative, `queue_size` or `hi_queue_size` is below 1, or `prefer_queue_size` is negative.

### Enqueue results

`add_job(job, high_priority=False, not_discardable=False)` and `add_job_wait_done(job, high_priority=False)` return an `EnqueueResult`:

| Result         | Meaning                                                  |
|----------------|----------------------------------------------------------|
| `NORMAL`       | The job was queued at once.                              |
| `BLOCKED`      | The producer waited for room, then queued the job.       |
| `DISCARD_SELF` | The queue was full and the new job was discarded.        |
| `DISCARD_HEAD` | The oldest job was discarded and the new job was queued. |

With `not_discardable=True`, `add_job` waits for room instead of discarding, and the job is never discarded later as the oldest job. `add_job_wait_done` always queues its job this way. It returns once a worker has handled the job, or once `shutdown()` is called.

If `shutdown()` is called while a producer is waiting for room or for `resume()`, the producer returns and its job is not queued.

### Statistics

- `queue_length()` returns the current length of the low-priority queue.
- `max_queue_length()` returns the largest low-priority queue length seen after an enqueue.
- `dropped_job_count()` returns the number of jobs, across both queues, that were handed over with `preferred=False`.
- `blocked_job_count()` returns the number of `add_job` calls that had to wait for room, across both queues.
- `stats_string()` returns one line for each queue that has received jobs, for example:

  ```
  demo q#0 added=20 finished=0 dropped=20 blocked=0 wait=12us proc=0us drop=3us pid=12345
  ```

  `q#0` is the low-priority queue and `q#1` the high-priority queue. `wait`, `proc` and `drop` are averages in microseconds. `pid` is the native thread id of the worker that started last.
- `print_stats()` writes the same text to standard output.

## Demonstrations and benchmarks

The module `dualqueue.examples` provides two demos:

- `run_basic(job_count=20)` sends tasks through two workers and prints each one.
- `run_priority()` queues five low-priority and five high-priority tasks on one slow worker, to show that the high-priority tasks go first.

Both demos print their statistics and return the tasks in the order they were handled.

The module `dualqueue.benchmark` provides these functions:

- `bench_spsc(job_count)` and `bench_multi_producer(num_producers, num_workers, jobs_per_producer)` return the throughput in jobs per second.
- `bench_latency_distribution(samples)` returns a `LatencyReport`, with the fields `samples`, `p50`, `p95`, `p99` and `max`, all in nanoseconds.
- `bench_priority_scheduling(low_jobs, high_jobs)` returns a `PriorityReport`, with the fields `high_processed`, `high_preferred` and `low_processed`.

## Commands

```
dualqueue-examples [basic|priority] [--jobs N]
dualqueue-benchmark [--scale FACTOR]
```

`dualqueue-examples` runs the basic demo by default, with 20 jobs unless `--jobs` sets another number. Pass `priority` to run the priority demo instead.

`dualqueue-benchmark` prints a report on throughput, enqueue-to-consume latency and priority scheduling. `--scale` multiplies every job count in the report.