import pytest

from conftest import FakeFetcher, run
from image_cache.errors import InvalidInputError
from image_cache.models import CacheKey, Priority


def test_duplicates_fetched_once(service, fetcher, env):
    result = run(env, service.schedule(["a", "b", "a"], Priority.NORMAL))

    assert fetcher.calls == ["a", "b"]
    assert (result.succeeded, result.failed) == (2, 0)
    assert set(service.window.keys()) == {CacheKey("a"), CacheKey("b")}
    assert service.get_stats().total_preloaded == 2


def test_failed_fetch_is_counted_not_raised(make_service, env):
    fetcher = FakeFetcher(env, fail={"x"})
    service = make_service(fetcher=fetcher, schedule_on_miss=False)

    result = run(env, service.schedule(["x"]))

    assert (result.succeeded, result.failed) == (0, 1)
    assert service.lookup("x") is None
    assert CacheKey("x") not in service.window
    assert not service.scheduler.in_flight


def test_rescheduling_cached_url_triggers_no_fetch(service, fetcher, env):
    run(env, service.schedule(["a"]))
    again = run(env, service.schedule(["a"]))

    assert fetcher.calls == ["a"]
    assert (again.succeeded, again.failed, again.skipped) == (0, 0, 1)
    assert service.get_stats().total_preloaded == 1


def test_concurrency_never_exceeds_cap(make_service, env):
    fetcher = FakeFetcher(env, latency=lambda key: 0.05 * (int(key.url[1:]) % 4 + 1))
    service = make_service(fetcher=fetcher)
    urls = [f"u{i}" for i in range(20)]

    result = run(env, service.schedule(urls, Priority.NORMAL, max_concurrency=3))

    assert result.succeeded == 20
    assert fetcher.max_in_flight == 3
    assert len(fetcher.calls) == 20


@pytest.mark.parametrize("priority, cap", [
    (Priority.HIGH, 3),
    (Priority.NORMAL, 5),
    (Priority.LOW, 8),
    ("low", 8),
])
def test_default_cap_follows_priority(make_service, env, priority, cap):
    fetcher = FakeFetcher(env)
    service = make_service(fetcher=fetcher, memory_capacity=100)

    run(env, service.schedule([f"u{i}" for i in range(20)], priority))

    assert fetcher.max_in_flight == cap


def test_waves_run_in_sequence_with_pause(make_service, env):
    fetcher = FakeFetcher(env, latency=1.0)
    service = make_service(fetcher=fetcher, inter_wave_pause=0.01)

    run(env, service.schedule([f"u{i}" for i in range(7)], max_concurrency=3))

    # три волны по 1 с и две паузы между ними
    assert env.now == pytest.approx(3.02)


def test_failure_does_not_cancel_siblings(make_service, env):
    fetcher = FakeFetcher(env, raise_on={"boom"}, fail={"gone"})
    service = make_service(fetcher=fetcher)

    result = run(env, service.schedule(["a", "boom", "gone", "b"], max_concurrency=4))

    assert (result.succeeded, result.failed) == (2, 2)
    assert set(service.window.keys()) == {CacheKey("a"), CacheKey("b")}


def test_in_flight_urls_are_not_fetched_twice(service, fetcher, env):
    first = service.schedule(["a", "b"])
    assert service.scheduler.in_flight == {CacheKey("a"), CacheKey("b")}

    second = service.schedule(["b", "c"])
    run(env, second)
    run(env, first)

    assert sorted(fetcher.calls) == ["a", "b", "c"]
    assert second.value.skipped == 1
    assert not service.scheduler.in_flight


def test_queue_emptied_after_failures(make_service, env):
    fetcher = FakeFetcher(env, fail={"a"}, raise_on={"b"})
    service = make_service(fetcher=fetcher)

    run(env, service.schedule(["a", "b"]))

    assert not service.scheduler.in_flight
    # после неудачи повторный schedule снова грузит
    run(env, service.schedule(["a"]))
    assert fetcher.calls.count("a") == 2


@pytest.mark.parametrize("urls", ["abc", b"abc", 42, {"a", "b"}, None])
def test_non_sequence_input_rejected(service, urls):
    with pytest.raises(InvalidInputError):
        service.schedule(urls)


def test_bad_items_and_cap_rejected(service):
    with pytest.raises(InvalidInputError):
        service.schedule([1, 2])
    with pytest.raises(InvalidInputError):
        service.schedule(["a"], max_concurrency=0)
    with pytest.raises(InvalidInputError):
        service.schedule(["a"], priority="urgent")


def test_empty_items_skipped(service, fetcher, env):
    result = run(env, service.schedule(["", None, "a"]))

    assert fetcher.calls == ["a"]
    assert result.skipped == 2


def test_transform_options_are_separate_keys(service, fetcher, env):
    small = CacheKey.of("a", width=100)
    result = run(env, service.schedule(["a", small, CacheKey.of("a", width=100)]))

    assert result.succeeded == 2
    assert fetcher.calls == ["a", "a"]
    assert service.lookup("a", width=100) is not None


def test_settlement_after_clear_is_dropped(service, env):
    proc = service.schedule(["a"])
    service.clear_all()

    result = run(env, proc)

    assert result.succeeded == 0
    assert result.skipped == 1
    assert len(service.index) == 0
    assert len(service.window) == 0
