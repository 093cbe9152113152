import pytest

from WorkLog.aggregation.cache import ComparisonCache
from WorkLog.aggregation.prefilter import TextPrefilter


def test_cache_evicts_least_recently_used():
    cache = ComparisonCache(max_size=2)
    cache.put("a", True)
    cache.put("b", False)
    assert cache.get("a") is True  # "b" is now the oldest
    cache.put("c", True)

    assert "b" not in cache
    assert "a" in cache and "c" in cache
    assert len(cache) == 2


def test_cache_counts_hits_and_misses():
    cache = ComparisonCache()
    assert cache.get("missing") is None
    cache.put("k", False)
    assert cache.get("k") is False
    assert (cache.hits, cache.misses) == (1, 1)

    cache.clear()
    assert len(cache) == 0
    assert (cache.hits, cache.misses) == (0, 0)


def test_cache_needs_room():
    with pytest.raises(ValueError):
        ComparisonCache(max_size=0)


def test_disabled_prefilter_passes_everything(make_entry):
    prefilter = TextPrefilter(min_similarity=0.0)
    assert not prefilter.enabled
    assert not prefilter.rejects(make_entry(description="abc"), make_entry(description="xyz"))


def test_prefilter_similarity(make_entry):
    prefilter = TextPrefilter(min_similarity=0.5)
    a = make_entry(description="Reconciled payroll ledger")
    b = make_entry(description="reconciled payroll ledger!")
    c = make_entry(project_name="Zzz", description="Vvv 777 kkk")

    assert prefilter.entry_text(b) == "test project reconciled payroll ledger"
    assert prefilter.similarity(a, b) == pytest.approx(1.0, abs=1e-6)
    assert prefilter.similarity(a, c) < 0.5
    assert prefilter.rejects(a, c)
