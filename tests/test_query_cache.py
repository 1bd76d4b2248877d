"""
Tests for the store reader's bounded query cache.
"""
from cursor_chat_manager.core.db.query_cache import QueryCache


def test_get_returns_stored_results():
    cache = QueryCache()
    cache.put(None, "/a/state.vscdb", [{"key": "k"}])
    assert cache.get(None, "/a/state.vscdb") == [{"key": "k"}]
    assert cache.get(None, "/b/state.vscdb") is None
    assert cache.get("all", "/a/state.vscdb") is None


def test_oldest_entry_is_evicted_past_bound():
    cache = QueryCache(max_entries=2)
    cache.put("p1", "/db", [1])
    cache.put("p2", "/db", [2])
    cache.put("p3", "/db", [3])

    assert len(cache) == 2
    assert cache.get("p1", "/db") is None
    assert cache.get("p3", "/db") == [3]


def test_invalidate_path_drops_only_that_path():
    cache = QueryCache()
    cache.put("all", "/a", [1])
    cache.put("chat", "/a", [2])
    cache.put("all", "/b", [3])

    assert cache.invalidate_path("/a") == 2
    assert cache.get("all", "/a") is None
    assert cache.get("all", "/b") == [3]
    assert cache.invalidate_path("/missing") == 0


def test_clear_empties_cache():
    cache = QueryCache()
    cache.put("all", "/a", [1])
    cache.clear()
    assert len(cache) == 0
