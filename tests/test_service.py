import pytest

from conftest import BrokenBackendStore, FailingStore, FakeFetcher, T0, UnreadableStore, run
from image_cache.clock import EnvClock
from image_cache.errors import InvalidInputError
from image_cache.models import CacheKey, Priority
from image_cache.stores.memory import MemoryStore

DAY = 86_400.0


def test_lookup_hit_updates_recency_and_stats(service, env, clock):
    run(env, service.schedule(["a"]))
    clock.advance(30)

    entry = service.lookup("a")

    assert entry is not None
    assert entry.last_accessed_at == T0 + 30
    assert entry.created_at == T0
    stats = service.get_stats()
    assert (stats.cache_hits, stats.cache_misses) == (1, 0)


def test_lookup_miss_schedules_background_fetch(service, fetcher, env):
    assert service.lookup("a") is None
    assert service.get_stats().cache_misses == 1
    assert CacheKey("a") in service.scheduler.in_flight

    env.run(until=1)

    assert fetcher.calls == ["a"]
    assert service.lookup("a") is not None


def test_lookup_miss_without_scheduling(make_service, fetcher, env):
    service = make_service(schedule_on_miss=False)

    assert service.lookup("a") is None
    env.run(until=1)
    assert fetcher.calls == []


def test_window_overflow_counts_eviction_but_keeps_metadata(make_service, env):
    service = make_service(memory_capacity=3)

    run(env, service.schedule(["u1", "u2", "u3", "u4"], max_concurrency=1))

    assert len(service.window) == 3
    assert CacheKey("u1") not in service.window
    assert service.get_stats().evictions == 1
    # метаданные остаются, байтов в памяти нет
    assert CacheKey("u1") in service.index


def test_full_maintenance_evicts_and_flushes(make_service, env, clock, store):
    service = make_service(max_age=7 * DAY)
    run(env, service.schedule(["old", "new"], max_concurrency=1))
    env.run(until=env.now + 1)
    clock.advance(8 * DAY)
    service.lookup("new")
    saves_before = store.saves

    removed = service.run_maintenance("full")
    env.run(until=env.now + 1)

    assert removed == 1
    assert CacheKey("old") not in service.index
    assert CacheKey("old") not in service.window
    assert CacheKey("new") in service.window
    assert service.get_stats().evictions == 1
    assert store.saves == saves_before + 1


def test_memory_maintenance_leaves_index_and_store(service, env, store):
    run(env, service.schedule(["a", "b"]))
    env.run(until=env.now + 1)
    saves_before = store.saves

    removed = service.run_maintenance("memory")
    env.run(until=env.now + 1)

    assert removed == 2
    assert len(service.window) == 0
    assert len(service.index) == 2
    assert store.saves == saves_before


def test_unknown_maintenance_mode(service):
    with pytest.raises(InvalidInputError):
        service.run_maintenance("everything")


def test_periodic_cleanup_runs_on_timer(make_service, env):
    service = make_service(clock=EnvClock(env, origin=0.0), max_age=50.0, cleanup_interval=100.0)
    run(env, service.schedule(["a"]))
    assert CacheKey("a") in service.index

    env.run(until=160)

    assert len(service.index) == 0
    assert service.get_stats().last_cleanup_at == pytest.approx(100.0)


def test_clear_all_drops_everything(service, env, store):
    run(env, service.schedule(["a", "b"]))
    env.run(until=env.now + 1)
    assert service.cfg.store_key in store.data
    pending = service.schedule(["c"])

    service.clear_all()

    assert service.cfg.store_key not in store.data
    assert len(service.index) == 0
    assert len(service.window) == 0
    assert not service.scheduler.in_flight
    assert service.get_stats().total_preloaded == 2
    run(env, pending)
    assert len(service.index) == 0


def test_metadata_survives_restart(make_service, env, store):
    first = make_service()
    run(env, first.schedule(["a", "b"], Priority.HIGH))
    first.lookup("a")
    first.flush()
    env.run(until=env.now + 1)

    second = make_service(fetcher=FakeFetcher(env))

    assert {e.url for e in second.index.entries()} == {"a", "b"}
    assert len(second.window) == 0
    stats = second.get_stats()
    assert stats.total_preloaded == 2
    assert stats.cache_hits == 1


def test_failing_save_does_not_change_behaviour(make_service, env):
    happy = make_service(store=MemoryStore(), fetcher=FakeFetcher(env))
    broken = make_service(store=FailingStore(), fetcher=FakeFetcher(env))

    results = []
    for service in (happy, broken):
        r = run(env, service.schedule(["a", "b", "a"]))
        results.append((r.succeeded, r.failed, r.skipped))
        assert service.lookup("a") is not None
    env.run(until=env.now + 1)

    assert results[0] == results[1]
    assert happy.get_stats() == broken.get_stats()
    assert broken.save_now() is False


def test_unreadable_store_starts_cold(make_service, env):
    service = make_service(store=UnreadableStore())

    assert len(service.index) == 0
    result = run(env, service.schedule(["a"]))
    assert result.succeeded == 1


def test_describe_reports_state(service, env):
    run(env, service.schedule(["a", "bb"], Priority.LOW))
    service.lookup("a")
    service.lookup("zzz")

    report = service.describe()

    assert report["total_entries"] == 2
    assert report["memory_entries"] == 2
    assert report["total_size"] == 300
    assert report["priority_distribution"] == {"low": 2, "normal": 0, "high": 0}
    assert report["hit_rate"] == pytest.approx(0.5)
    assert report["oldest_entry"] == T0


def test_preload_screen(service, fetcher, env):
    stores = [{
        "image_url": "https://cdn/s1.png",
        "cover_image": "https://cdn/s1-cover.png",
        "menu_items": [{"profile_image": "https://cdn/m1.png"}, {"name": "no image"}],
    }]

    result = run(env, service.preload_screen("store", stores))

    assert result.succeeded == 3
    assert service.preload_screen("settings", stores) is None


def test_url_validation_skips_non_images(make_service, fetcher, env):
    service = make_service(validate_urls=True)

    result = run(env, service.schedule(["https://cdn/a.jpg", "ftp://cdn/b.jpg", "https://cdn/readme.txt"]))

    assert fetcher.calls == ["https://cdn/a.jpg"]
    assert result.skipped == 2


def test_hit_protects_key_from_overflow_at_same_time(make_service, env):
    service = make_service(memory_capacity=2)
    run(env, service.schedule(["a", "b"]))

    assert service.lookup("a") is not None
    run(env, service.schedule(["c"]))

    assert CacheKey("a") in service.window
    assert CacheKey("b") not in service.window
    assert service.get_stats().evictions == 1


def test_raw_store_errors_never_escape(make_service, env):
    service = make_service(store=BrokenBackendStore())

    result = run(env, service.schedule(["a"]))
    env.run(until=env.now + 1)

    assert result.succeeded == 1
    assert service.lookup("a") is not None
    assert service.save_now() is False
    service.clear_all()
    assert len(service.index) == 0


def test_hit_on_refetching_key_stays_out_of_window(make_service, env):
    service = make_service(memory_capacity=1)
    run(env, service.schedule(["a"]))
    run(env, service.schedule(["b"]))
    assert CacheKey("a") not in service.window

    pending = service.schedule(["a"])
    assert service.lookup("a") is not None
    assert service.scheduler.is_pending(CacheKey("a"))
    assert CacheKey("a") not in service.window

    run(env, pending)
    assert CacheKey("a") in service.window


def test_lookup_with_bad_key_is_a_miss(service, fetcher, env):
    assert service.lookup(42) is None
    env.run(until=env.now + 1)

    assert service.get_stats().cache_misses == 1
    assert fetcher.calls == []
