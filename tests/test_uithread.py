"""Tests for uithread.py -- task handoff to the owner thread."""

import threading

import pytest

from uireplay.errors import DispatcherStoppedError
from uireplay.uithread import UiThread


def _run_in_background(dispatcher):
    ready = threading.Event()

    def target():
        dispatcher.post(ready.set)
        dispatcher.run()

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    assert ready.wait(timeout=5)
    return thread


class TestUiThread:
    def test_call_inline_on_owner(self):
        dispatcher = UiThread()
        assert dispatcher.is_owner_thread()
        assert dispatcher.call(lambda x: x * 2, 21) == 42

    def test_post_runs_on_run_pending(self):
        dispatcher = UiThread()
        seen = []
        future = dispatcher.post(seen.append, 1)
        assert not future.done()

        dispatcher.run_pending()

        assert seen == [1]
        assert future.done()

    def test_exception_delivered_to_caller(self):
        dispatcher = UiThread()
        future = dispatcher.post(lambda: 1 / 0)
        dispatcher.run_pending()
        with pytest.raises(ZeroDivisionError):
            future.result()

    def test_cancelled_task_skipped(self):
        dispatcher = UiThread()
        seen = []
        future = dispatcher.post(seen.append, 1)
        future.cancel()
        dispatcher.run_pending()
        assert seen == []

    def test_call_from_other_thread_runs_on_owner(self):
        dispatcher = UiThread()
        thread = _run_in_background(dispatcher)
        try:
            assert not dispatcher.is_owner_thread()
            assert dispatcher.running
            owner = dispatcher.call(threading.get_ident)
            assert owner == thread.ident
        finally:
            dispatcher.stop()
            thread.join(timeout=5)
        assert not dispatcher.running

    def test_each_caller_gets_its_own_result(self):
        dispatcher = UiThread()
        thread = _run_in_background(dispatcher)
        results = {}

        def worker(n):
            results[n] = dispatcher.call(lambda: n * n)

        workers = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        try:
            for w in workers:
                w.start()
            for w in workers:
                w.join(timeout=5)
        finally:
            dispatcher.stop()
            thread.join(timeout=5)
        assert results == {n: n * n for n in range(8)}

    def test_call_from_other_thread_without_loop_raises(self):
        dispatcher = UiThread()
        errors = []

        def worker():
            try:
                dispatcher.call(lambda: 1)
            except DispatcherStoppedError as exc:
                errors.append(exc)

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join(timeout=5)

        assert not thread.is_alive()
        assert len(errors) == 1

    def test_call_after_loop_exit_raises(self):
        dispatcher = UiThread()
        thread = _run_in_background(dispatcher)
        dispatcher.stop()
        thread.join(timeout=5)

        with pytest.raises(DispatcherStoppedError):
            dispatcher.call(lambda: 1)

    def test_tasks_behind_stop_still_run(self):
        dispatcher = UiThread()
        seen = []
        dispatcher.stop()
        future = dispatcher.post(seen.append, 1)

        dispatcher.run()

        assert seen == [1]
        assert future.done()
        assert not dispatcher.running
