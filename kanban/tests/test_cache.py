"""Tests for the snapshot cache."""

from fakes import make_task

from kanban.cache import TaskCache


class TestReplace:
    def test_starts_empty_and_unloaded(self):
        cache = TaskCache()
        assert cache.tasks == ()
        assert cache.version == 0
        assert cache.loaded is False

    def test_replace_swaps_whole_snapshot(self):
        cache = TaskCache()
        cache.replace([make_task("a"), make_task("b")])
        cache.replace([make_task("c")])
        assert [t.id for t in cache.tasks] == ["c"]
        assert cache.get("a") is None
        assert cache.get("c").id == "c"
        assert cache.version == 2
        assert cache.loaded is True

    def test_empty_snapshot_still_counts_as_loaded(self):
        cache = TaskCache()
        cache.replace([])
        assert cache.loaded is True
        assert len(cache) == 0

    def test_snapshot_is_copied(self):
        cache = TaskCache()
        snapshot = [make_task("a")]
        cache.replace(snapshot)
        snapshot.append(make_task("b"))
        assert len(cache) == 1


class TestListeners:
    def test_listener_called_after_replace(self):
        cache = TaskCache()
        seen = []
        cache.add_listener(lambda c: seen.append((c.version, len(c))))
        cache.replace([make_task("a")])
        assert seen == [(1, 1)]

    def test_remove_listener(self):
        cache = TaskCache()
        seen = []
        remove = cache.add_listener(lambda c: seen.append(c.version))
        remove()
        remove()
        cache.replace([])
        assert seen == []


def test_attach_subscribes_replace(fake_adapter):
    cache = TaskCache()
    subscription = cache.attach(fake_adapter)
    fake_adapter.push([make_task("a")])
    assert [t.id for t in cache.tasks] == ["a"]
    assert subscription is fake_adapter.subscriptions[0]
