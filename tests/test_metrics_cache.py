import threading

import pytest

from timeline_sink.metrics_cache import MetricCache, Sample


def test_size_based_flush_returns_all_samples_and_empties_series():
    cache = MetricCache(max_samples_per_name=3, eviction_interval_millis=60000)

    cache.put_sample("cpu.load", 0, 0.5)
    assert cache.take_ready_series("cpu.load") is None
    cache.put_sample("cpu.load", 1, 0.6)
    assert cache.take_ready_series("cpu.load") is None
    cache.put_sample("cpu.load", 2, 0.7)

    series = cache.take_ready_series("cpu.load")
    assert series is not None
    assert series.samples == [Sample(0, 0.5), Sample(1, 0.6), Sample(2, 0.7)]
    assert series.start_time == 0
    assert cache.buffered_count("cpu.load") == 0


def test_time_based_flush_triggered_by_other_metric_advancing_clock():
    cache = MetricCache(max_samples_per_name=100, eviction_interval_millis=1000)

    cache.put_sample("cpu.load", 0, 1.0)
    assert cache.take_ready_series("cpu.load") is None

    cache.put_sample("mem.used", 1000, 5.0)
    # exactly the interval is not enough
    assert cache.take_ready_series("cpu.load") is None

    cache.put_sample("mem.used", 1500, 6.0)
    series = cache.take_ready_series("cpu.load")
    assert series is not None
    assert series.values == {0: 1.0}


def test_overdue_metric_is_ready_on_next_insert_regardless_of_count():
    cache = MetricCache(max_samples_per_name=100, eviction_interval_millis=1000)
    cache.put_sample("requests", 0, 1)
    cache.put_sample("requests", 500, 2)
    assert cache.take_ready_series("requests") is None

    cache.put_sample("requests", 1001, 3)
    series = cache.take_ready_series("requests")
    assert [s.timestamp for s in series.samples] == [0, 500, 1001]


def test_flush_moves_last_flush_time_to_clock():
    cache = MetricCache(max_samples_per_name=100, eviction_interval_millis=1000)
    cache.put_sample("a", 0, 1)
    cache.put_sample("a", 2000, 2)
    assert cache.take_ready_series("a") is not None

    cache.put_sample("a", 2500, 3)
    assert cache.take_ready_series("a") is None
    cache.put_sample("a", 3001, 4)
    series = cache.take_ready_series("a")
    assert series.last_flush_time == 2000
    assert series.start_time == 2500
    assert series.values == {2500: 3.0, 3001: 4.0}


def test_take_is_not_a_peek():
    cache = MetricCache(max_samples_per_name=2, eviction_interval_millis=60000)
    cache.put_sample("x", 1, 1)
    cache.put_sample("x", 2, 2)

    assert cache.take_ready_series("x") is not None
    assert cache.take_ready_series("x") is None


def test_take_without_buffered_samples_does_not_mutate():
    cache = MetricCache(max_samples_per_name=2, eviction_interval_millis=1000)
    assert cache.take_ready_series("unknown") is None
    assert "unknown" not in cache

    cache.put_sample("x", 0, 1)
    cache.put_sample("x", 1, 2)
    cache.take_ready_series("x")

    cache.put_sample("y", 5000, 1)
    # x is overdue but has nothing buffered
    assert cache.take_ready_series("x") is None
    assert cache.take_ready_series("x") is None
    assert cache.buffered_count("x") == 0


def test_buffer_never_exceeds_capacity_and_drops_oldest():
    cache = MetricCache(max_samples_per_name=3, eviction_interval_millis=60000)
    for ts in range(10):
        cache.put_sample("disk", ts, ts * 10)
        assert cache.buffered_count("disk") <= 3

    series = cache.take_ready_series("disk")
    assert series.values == {7: 70.0, 8: 80.0, 9: 90.0}


def test_duplicate_timestamp_overwrites_without_eviction():
    cache = MetricCache(max_samples_per_name=2, eviction_interval_millis=60000)
    cache.put_sample("x", 1, 1)
    cache.put_sample("x", 1, 5)
    assert cache.buffered_count("x") == 1
    cache.put_sample("x", 2, 2)
    assert cache.take_ready_series("x").values == {1: 5.0, 2: 2.0}


def test_series_keeps_latest_attributes():
    cache = MetricCache(max_samples_per_name=2, eviction_interval_millis=60000)
    cache.put_sample("x", 1, 1, app_id="spout", metric_type="Long")
    cache.put_sample("x", 2, 2.5, metric_type="Double")
    series = cache.take_ready_series("x")
    assert series.app_id == "spout"
    assert series.metric_type == "Double"


def test_clear_drops_everything():
    cache = MetricCache(max_samples_per_name=2, eviction_interval_millis=60000)
    cache.put_sample("x", 1, 1)
    cache.put_sample("y", 2, 1)
    assert len(cache) == 2
    assert sorted(cache.names()) == ["x", "y"]

    cache.clear()
    assert len(cache) == 0
    assert cache.clock is None


@pytest.mark.parametrize("max_samples, interval", [(0, 1000), (10, 0), (-1, 5)])
def test_rejects_non_positive_limits(max_samples, interval):
    with pytest.raises(ValueError):
        MetricCache(max_samples, interval)


def test_concurrent_writers_on_distinct_names():
    cache = MetricCache(max_samples_per_name=50, eviction_interval_millis=10 ** 9)
    taken = {}

    def worker(name):
        count = 0
        for ts in range(1000):
            cache.put_sample(name, ts, ts)
            assert cache.buffered_count(name) <= 50
            series = cache.take_ready_series(name)
            if series is not None:
                count += len(series)
        taken[name] = count

    threads = [threading.Thread(target=worker, args=(f"m{i}",)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert taken == {f"m{i}": 1000 for i in range(8)}


def _hammer_one_name(cache, threads=8, per_thread=500):
    taken = []
    taken_lock = threading.Lock()
    over_capacity = []

    def worker(offset):
        for k in range(per_thread):
            cache.put_sample("shared", k * threads + offset, offset)
            if cache.buffered_count("shared") > cache.max_samples_per_name:
                over_capacity.append(k)
            series = cache.take_ready_series("shared")
            if series is not None:
                with taken_lock:
                    taken.extend(series.values)

    workers = [threading.Thread(target=worker, args=(i,)) for i in range(threads)]
    for thread in workers:
        thread.start()
    for thread in workers:
        thread.join()

    put = {k * threads + i for i in range(threads) for k in range(per_thread)}
    return put, taken, over_capacity


def test_concurrent_writers_on_same_name_lose_and_duplicate_nothing():
    # room for every sample, so only the time rule flushes
    cache = MetricCache(max_samples_per_name=10 ** 6, eviction_interval_millis=5)

    put, taken, over_capacity = _hammer_one_name(cache)

    cache.put_sample("other", 10 ** 9, 0)
    remaining = cache.take_ready_series("shared")
    leftover = list(remaining.values) if remaining is not None else []

    assert len(taken) == len(set(taken))
    assert sorted(taken + leftover) == sorted(put)
    assert over_capacity == []


def test_concurrent_writers_on_same_name_respect_capacity():
    cache = MetricCache(max_samples_per_name=20, eviction_interval_millis=10 ** 9)

    put, taken, over_capacity = _hammer_one_name(cache)

    assert over_capacity == []
    assert len(taken) == len(set(taken))
    assert set(taken) <= put
    assert cache.buffered_count("shared") <= 20


def test_window_with_any_double_sample_is_labelled_double():
    cache = MetricCache(max_samples_per_name=3, eviction_interval_millis=60000)
    cache.put_sample("x", 1, 1, metric_type="Long")
    cache.put_sample("x", 2, 2.5, metric_type="Double")
    cache.put_sample("x", 3, 3, metric_type="Long")
    assert cache.take_ready_series("x").metric_type == "Double"

    # the label starts over with the next window
    cache.put_sample("x", 4, 4, metric_type="Long")
    cache.put_sample("x", 5, 5, metric_type="Long")
    cache.put_sample("x", 6, 6, metric_type="Long")
    assert cache.take_ready_series("x").metric_type == "Long"
