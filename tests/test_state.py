# tests/test_state.py
"""
Tests for SharedState, the Locals/Globals stores.
"""

import threading

from triggerexpr.state import DESCRIPTION_KEY, SharedState, shared_globals


class TestSharedState:

    def test_get_set_remove(self):
        s = SharedState()
        assert s.get("a") is None
        assert s.set("a", 1) == 1
        assert s.get("a") == 1
        assert s.remove("a") == 1
        assert s.remove("a") is None
        assert "a" not in s

    def test_initial_contents_copied(self):
        initial = {"a": 1}
        s = SharedState(initial)
        s.set("b", 2)
        assert initial == {"a": 1}

    def test_get_in(self):
        s = SharedState({"media": {"player": {"slot": "usb"}}})
        assert s.get_in(["media", "player", "slot"]) == "usb"
        assert s.get_in(["media", "nobody", "slot"], "none") == "none"
        assert s.get_in([], "none") == "none"

    def test_update(self):
        s = SharedState({"n": 1})
        assert s.update("n", lambda old, k: old + k, 5) == 6

    def test_update_may_read_same_store(self):
        s = SharedState({"a": 2, "b": 3})
        assert s.update("c", lambda _old: s.get("a") * s.get("b")) == 6

    def test_compare_and_set(self):
        s = SharedState()
        assert s.compare_and_set("k", None, 1) is True
        assert s.compare_and_set("k", None, 2) is False
        assert s.get("k") == 1

    def test_snapshot_is_a_copy(self):
        s = SharedState({"a": 1})
        snap = s.snapshot()
        snap["a"] = 99
        assert s.get("a") == 1

    def test_len_iter_clear(self):
        s = SharedState({"a": 1, "b": 2})
        assert len(s) == 2
        assert sorted(s) == ["a", "b"]
        s.clear()
        assert len(s) == 0

    def test_repr_includes_name(self):
        assert "globals" in repr(SharedState(name="globals"))

    def test_description_key(self):
        assert DESCRIPTION_KEY == "track-description"

    def test_process_globals_singleton(self):
        assert shared_globals() is shared_globals()


class TestConcurrency:

    def test_racing_writes_leave_one_value(self):
        s = SharedState()
        barrier = threading.Barrier(2)

        def writer(value):
            barrier.wait()
            for _ in range(500):
                s.set("last-player", value)

        threads = [threading.Thread(target=writer, args=(v,)) for v in (1, 2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert s.get("last-player") in (1, 2)

    def test_update_is_atomic(self):
        s = SharedState({"n": 0})

        def bump():
            for _ in range(1000):
                s.update("n", lambda old: old + 1)

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert s.get("n") == 4000
