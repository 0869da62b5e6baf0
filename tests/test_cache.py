import pytest

from mediclean.utils.cache import TTLCache


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = TTLCache(ttl_seconds=60, clock=clock)
    cache.set(1, {'id': 1})
    assert cache.get(1) == {'id': 1}

    clock.now += 59
    assert 1 in cache
    clock.now += 1
    assert cache.get(1) is None
    assert cache.hits == 2
    assert cache.misses == 1


def test_oldest_entry_evicted_when_full():
    cache = TTLCache(ttl_seconds=60, max_entries=2, clock=FakeClock())
    cache.set('a', 1)
    cache.set('b', 2)
    cache.set('c', 3)
    assert cache.get('a') is None
    assert cache.get('b') == 2
    assert len(cache) == 2


def test_delete_and_clear():
    cache = TTLCache(clock=FakeClock())
    cache.set('a', 1)
    assert cache.delete('a') is True
    assert cache.delete('a') is False
    cache.set('b', 2)
    cache.clear()
    assert len(cache) == 0


def test_rejects_bad_settings():
    with pytest.raises(ValueError):
        TTLCache(ttl_seconds=0)
    with pytest.raises(ValueError):
        TTLCache(max_entries=0)
