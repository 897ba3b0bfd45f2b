"""Tests for the cache module."""

from __future__ import annotations

import json
import time

from gh_reports.cache import FileCache


def test_cache_get_set(tmp_path):
    cache = FileCache(cache_dir=tmp_path, ttl=3600)
    cache.set("/repos/o/r/pulls", {"state": "all"}, [1, 2, 3])
    assert cache.get("/repos/o/r/pulls", {"state": "all"}) == [1, 2, 3]


def test_cache_miss(tmp_path):
    cache = FileCache(cache_dir=tmp_path, ttl=3600)
    assert cache.get("/nonexistent", None) is None


def test_cache_ttl_expired(tmp_path):
    cache = FileCache(cache_dir=tmp_path, ttl=1)
    cache.set("/test/url", None, {"data": True})

    # Backdate the only entry
    path = next(tmp_path.glob("*.json"))
    data = json.loads(path.read_text())
    data["ts"] = time.time() - 10
    path.write_text(json.dumps(data))

    assert cache.get("/test/url", None) is None
    assert not path.exists()


def test_cache_different_params(tmp_path):
    cache = FileCache(cache_dir=tmp_path, ttl=3600)
    cache.set("/url", {"a": "1"}, "first")
    cache.set("/url", {"a": "2"}, "second")
    assert cache.get("/url", {"a": "1"}) == "first"
    assert cache.get("/url", {"a": "2"}) == "second"


def test_cache_namespaces_are_separate(tmp_path):
    public = FileCache(cache_dir=tmp_path, namespace="https://api.github.com")
    enterprise = FileCache(cache_dir=tmp_path, namespace="https://ghe.example.com/api/v3")
    public.set("/user", None, {"login": "octocat"})
    assert enterprise.get("/user", None) is None


def test_cache_corrupt_entry_is_a_miss(tmp_path):
    cache = FileCache(cache_dir=tmp_path)
    cache.set("/url", None, "value")
    next(tmp_path.glob("*.json")).write_text("{not json")
    assert cache.get("/url", None) is None


def test_cache_sweep_removes_expired_and_unreadable(tmp_path):
    cache = FileCache(cache_dir=tmp_path, ttl=60)
    cache.set("/fresh", None, "kept")
    cache.set("/old", None, "dropped")

    old = next(p for p in tmp_path.glob("*.json") if json.loads(p.read_text())["url"] == "/old")
    entry = json.loads(old.read_text())
    entry["ts"] = time.time() - 120
    old.write_text(json.dumps(entry))
    (tmp_path / "broken.json").write_text("{not json")

    assert cache.sweep() == 2
    assert cache.get("/fresh", None) == "kept"
    assert len(list(tmp_path.glob("*.json"))) == 1
