"""Tests for the per-run TestWatcher token."""

from testwatch_core.test_watcher import TestWatcher


class TestInterrupt:
    def test_starts_uninterrupted(self):
        token = TestWatcher(is_watch_mode=True)
        assert token.is_watch_mode is True
        assert token.is_interrupted() is False

    def test_interrupt_is_idempotent(self):
        token = TestWatcher(is_watch_mode=True)
        calls = []
        token.add_listener(lambda: calls.append(1))

        token.interrupt()
        token.interrupt()

        assert token.is_interrupted()
        assert calls == [1]

    def test_listener_added_after_interrupt_runs_immediately(self):
        token = TestWatcher(is_watch_mode=False)
        token.interrupt()
        calls = []

        token.add_listener(lambda: calls.append(1))

        assert calls == [1]

    def test_failing_listener_does_not_stop_others(self):
        token = TestWatcher(is_watch_mode=True)
        calls = []

        def boom():
            raise RuntimeError("listener broke")

        token.add_listener(boom)
        token.add_listener(lambda: calls.append(1))
        token.interrupt()

        assert calls == [1]

    def test_tokens_are_independent(self):
        first = TestWatcher(is_watch_mode=True)
        second = TestWatcher(is_watch_mode=True)

        first.interrupt()

        assert not second.is_interrupted()

    def test_repr(self):
        assert "interrupted=False" in repr(TestWatcher(is_watch_mode=True))
