import threading
import time

import pytest

from dualqueue.core import Config, ConsumerProducer, EnqueueResult


class Tally:
    def __init__(self):
        self._lock = threading.Lock()
        self.total = 0
        self.items = []
        self.flags = []

    def __call__(self, value, preferred):
        with self._lock:
            self.total += value
            self.items.append(value)
            self.flags.append(preferred)
        return 0


def test_basic_enqueue_and_consume():
    tally = Tally()
    cp = ConsumerProducer(Config(name="basic", queue_size=16, hi_queue_size=4), tally)
    cp.start()
    for i in range(1, 11):
        cp.add_job(i)
    cp.shutdown()
    assert tally.total == 55


def test_flush_and_pause_then_resume():
    tally = Tally()
    cp = ConsumerProducer(Config(name="flush", worker_num=2, queue_size=32), tally)
    cp.start()
    for _ in range(20):
        cp.add_job(1)
    cp.flush_and_pause()
    assert tally.total == 20
    cp.resume()
    for _ in range(5):
        cp.add_job(1)
    cp.shutdown()
    assert tally.total == 25


def test_stats_reporting_contains_name():
    cp = ConsumerProducer(Config(name="stats", queue_size=8), lambda v, p: 0)
    cp.start()
    for _ in range(5):
        cp.add_job(0)
    cp.shutdown()
    assert "stats" in cp.stats_string()


def test_multi_worker_concurrent_processing():
    tally = Tally()
    cp = ConsumerProducer(
        Config(name="concurrent", worker_num=4, queue_size=128, hi_queue_size=16), tally
    )
    cp.start()
    for i in range(10000):
        cp.add_job(i, False, True)
    cp.shutdown()
    assert tally.total == sum(range(10000))


def test_multi_producer_threads():
    tally = Tally()
    cp = ConsumerProducer(
        Config(name="multi_prod", worker_num=2, queue_size=64, hi_queue_size=16), tally
    )
    cp.start()

    def produce():
        for _ in range(1000):
            cp.add_job(1, False, True)

    producers = [threading.Thread(target=produce) for _ in range(4)]
    for t in producers:
        t.start()
    for t in producers:
        t.join()
    cp.shutdown()
    assert tally.total == 4000


def test_discard_when_queue_full():
    tally = Tally()

    def consume(value, preferred):
        tally(value, preferred)
        time.sleep(0.02)

    cp = ConsumerProducer(
        Config(name="discard", queue_size=4, prefer_queue_size=4, hi_queue_size=4),
        consume,
    )
    cp.start()
    for i in range(20):
        cp.add_job(i, False, False)
    cp.shutdown()
    discarded = tally.flags.count(False)
    assert len(tally.items) == 20
    assert sorted(tally.items) == list(range(20))
    assert discarded > 0
    assert cp.dropped_job_count() == discarded


def test_not_discardable_jobs_block_when_full():
    tally = Tally()

    def consume(value, preferred):
        tally(1, preferred)
        time.sleep(0.005)

    cp = ConsumerProducer(
        Config(name="nodiscard", worker_num=2, queue_size=4, prefer_queue_size=4),
        consume,
    )
    cp.start()
    results = [cp.add_job(i, False, True) for i in range(10)]
    cp.shutdown()
    assert tally.total == 10
    assert set(results) <= {EnqueueResult.NORMAL, EnqueueResult.BLOCKED}
    assert cp.dropped_job_count() == 0
    assert "added=10 finished=10 dropped=0" in cp.stats_string()


def test_single_worker_processes_all_jobs():
    tally = Tally()
    cp = ConsumerProducer(Config(name="single_worker", queue_size=8), tally)
    cp.start()
    for i in range(1, 101):
        cp.add_job(i, False, True)
    cp.shutdown()
    assert tally.total == 5050


def test_multiple_wait_done_sequential():
    last = []
    cp = ConsumerProducer(
        Config(name="multi_wait", worker_num=2, queue_size=8),
        lambda v, p: last.append(v),
    )
    cp.start()
    for i in range(1, 6):
        cp.add_job_wait_done(i)
        assert last[-1] == i
    cp.shutdown()


def test_immediate_shutdown_after_start():
    cp = ConsumerProducer(Config(name="fast_shutdown", worker_num=4), lambda v, p: 0)
    cp.start()
    cp.shutdown()
    assert cp.queue_length() == 0


def test_shutdown_without_start():
    cp = ConsumerProducer(Config(name="no_start", queue_size=8), lambda v, p: 0)
    cp.shutdown()
    assert cp.max_queue_length() == 0
    assert cp.blocked_job_count() == 0


def test_high_priority_wait_done_is_preferred():
    tally = Tally()
    cp = ConsumerProducer(Config(name="hi_wait", queue_size=8, hi_queue_size=8), tally)
    cp.start()
    cp.add_job_wait_done(42, True)
    assert tally.items == [42]
    assert tally.flags == [True]
    cp.shutdown()


def test_high_priority_jobs_processed_first():
    tally = Tally()
    cp = ConsumerProducer(Config(name="prio", queue_size=32, hi_queue_size=32), tally)
    for i in (1, 2, 3):
        cp.add_job(i, False, True)
    for i in (100, 101, 102):
        cp.add_job(i, True)
    cp.start()
    cp.shutdown()
    assert tally.items == [100, 101, 102, 1, 2, 3]


def test_prefer_queue_size_counts_all_jobs():
    tally = Tally()

    def consume(value, preferred):
        tally(value, preferred)
        time.sleep(0.002)

    cp = ConsumerProducer(
        Config(name="prefer", queue_size=16, prefer_queue_size=2), consume
    )
    cp.start()
    results = [cp.add_job(0) for _ in range(10)]
    cp.shutdown()
    assert len(tally.flags) == 10
    assert results == [EnqueueResult.NORMAL] * 10
    assert cp.dropped_job_count() == tally.flags.count(False)
    assert "added=10 " in cp.stats_string()


def test_preferred_flag_follows_queue_length():
    tally = Tally()
    cp = ConsumerProducer(
        Config(name="prefer_exact", queue_size=16, prefer_queue_size=2), tally
    )
    for i in range(4):
        cp.add_job(i)
    cp.start()
    cp.shutdown()
    assert tally.items == [0, 1, 2, 3]
    assert tally.flags == [False, False, True, True]
    assert cp.dropped_job_count() == 2


def test_blocked_count_accuracy():
    tally = Tally()

    def consume(value, preferred):
        time.sleep(0.005)
        tally(1, preferred)

    cp = ConsumerProducer(
        Config(name="blocked_stats", queue_size=2, hi_queue_size=2), consume
    )
    cp.start()
    for _ in range(10):
        cp.add_job(0, False, True)
    cp.shutdown()
    assert tally.total == 10
    assert cp.blocked_job_count() > 0


def test_max_queue_length_tracks_peak():
    cp = ConsumerProducer(
        Config(name="max_queue", queue_size=32), lambda v, p: time.sleep(0.01)
    )
    cp.start()
    for _ in range(10):
        cp.add_job(0)
    time.sleep(0.05)
    max_len = cp.max_queue_length()
    assert 0 < max_len <= 32
    cp.shutdown()


def test_dropped_job_count_in_discard_mode():
    cp = ConsumerProducer(
        Config(name="drop_stats", queue_size=2, prefer_queue_size=2, hi_queue_size=2),
        lambda v, p: time.sleep(0.05),
    )
    cp.start()
    for _ in range(20):
        cp.add_job(0)
    cp.shutdown()
    assert cp.dropped_job_count() > 0


def test_stats_string_contains_name_and_counts():
    cp = ConsumerProducer(Config(name="stats_str", queue_size=8), lambda v, p: 0)
    cp.start()
    for _ in range(3):
        cp.add_job(0)
    cp.shutdown()
    stats = cp.stats_string()
    assert "stats_str" in stats
    assert "added=3" in stats


def test_multi_thread_stats_consistency():
    tally = Tally()
    cp = ConsumerProducer(
        Config(name="mt_stats", worker_num=2, queue_size=64, hi_queue_size=16), tally
    )
    cp.start()

    def produce():
        for _ in range(500):
            cp.add_job(1, False, True)

    producers = [threading.Thread(target=produce) for _ in range(4)]
    for t in producers:
        t.start()
    for t in producers:
        t.join()
    cp.shutdown()
    assert tally.total == 2000
    assert 0 <= cp.blocked_job_count() <= 2000


def test_flush_and_pause_stats_complete():
    tally = Tally()
    cp = ConsumerProducer(
        Config(name="flush_stats", worker_num=2, queue_size=32, hi_queue_size=8), tally
    )
    cp.start()
    for _ in range(50):
        cp.add_job(1)
    cp.flush_and_pause()
    assert tally.total == 50
    assert "added=50" in cp.stats_string()
    cp.resume()
    cp.shutdown()


def test_discard_head_without_workers():
    tally = Tally()
    cp = ConsumerProducer(
        Config(name="disc", queue_size=2, prefer_queue_size=2), tally
    )
    assert cp.add_job(0) is EnqueueResult.NORMAL
    assert cp.add_job(1) is EnqueueResult.NORMAL
    assert cp.add_job(2) is EnqueueResult.DISCARD_HEAD
    assert tally.items == [0]
    assert tally.flags == [False]
    assert cp.queue_length() == 2
    assert cp.max_queue_length() == 2
    assert cp.dropped_job_count() == 1
    assert cp.stats_string() == (
        "disc q#0 added=3 finished=0 dropped=1 blocked=0 "
        "wait=0us proc=0us drop=0us pid=0\n"
    )


def test_discard_self_when_head_not_discardable():
    tally = Tally()
    cp = ConsumerProducer(
        Config(name="self", queue_size=2, prefer_queue_size=2), tally
    )
    cp.add_job(0, False, True)
    cp.add_job(1, False, True)
    assert cp.add_job(7) is EnqueueResult.DISCARD_SELF
    assert tally.items == [7]
    assert cp.queue_length() == 2
    assert "added=3 finished=0 dropped=1" in cp.stats_string()


def test_blocked_producer_released_by_shutdown():
    cp = ConsumerProducer(Config(name="release", queue_size=1), lambda v, p: 0)
    cp.add_job(0)
    results = []
    producer = threading.Thread(target=lambda: results.append(cp.add_job(1)))
    producer.start()
    time.sleep(0.02)
    cp.shutdown()
    producer.join(timeout=5)
    assert results == [EnqueueResult.BLOCKED]
    assert cp.blocked_job_count() == 1


def test_high_priority_stats_line_uses_second_queue():
    cp = ConsumerProducer(Config(name="hi", hi_queue_size=2), lambda v, p: 0)
    cp.add_job(0, True)
    stats = cp.stats_string()
    assert stats.startswith("hi q#1 added=1 ")
    assert "q#0" not in stats


def test_context_manager_runs_and_drains():
    tally = Tally()
    with ConsumerProducer(Config(name="ctx", queue_size=4), tally) as cp:
        for i in range(1, 21):
            cp.add_job(i, False, True)
    assert tally.total == 210
    assert cp.queue_length() == 0


def test_print_stats_writes_stats_string(capsys):
    cp = ConsumerProducer(Config(name="printed", queue_size=4, prefer_queue_size=1), lambda v, p: 0)
    cp.add_job(0)
    cp.print_stats()
    assert capsys.readouterr().out == cp.stats_string()


def test_print_stats_silent_without_jobs(capsys):
    cp = ConsumerProducer(Config(name="quiet"), lambda v, p: 0)
    cp.print_stats()
    assert capsys.readouterr().out == ""


@pytest.mark.parametrize(
    "kwargs",
    [
        {"queue_size": 0},
        {"hi_queue_size": 0},
        {"worker_num": -1},
        {"prefer_queue_size": -1},
    ],
)
def test_config_rejects_invalid_sizes(kwargs):
    with pytest.raises(ValueError):
        Config(**kwargs)