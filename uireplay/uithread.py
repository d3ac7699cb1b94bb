"""One-shot task handoff to the thread that owns input delivery and rendering."""

import logging
import queue
import threading
from concurrent.futures import Future
from typing import Callable, Optional

from uireplay.errors import DispatcherStoppedError

logger = logging.getLogger(__name__)

_STOP = object()


class UiThread:
    """Runs tasks on a single owner thread.

    The owner is whichever thread calls ``run()`` (by default the thread that
    created the dispatcher). Other threads hand work over with ``post`` or
    ``call``; each task carries its own Future, so a caller waiting on
    ``call`` receives exactly that task's result.
    """

    def __init__(self):
        self._tasks: "queue.Queue" = queue.Queue()
        self._owner_ident: Optional[int] = threading.get_ident()
        self._running = False
        # Guards _running against tasks queued by call() while the loop exits
        self._lock = threading.Lock()

    def is_owner_thread(self) -> bool:
        return threading.get_ident() == self._owner_ident

    @property
    def running(self) -> bool:
        return self._running

    def post(self, fn: Callable, *args, **kwargs) -> Future:
        """Queue ``fn`` for the owner thread and return its Future.

        Tasks posted before ``run()`` starts are kept until the loop or
        ``run_pending()`` picks them up.
        """
        future: Future = Future()
        self._tasks.put((future, fn, args, kwargs))
        return future

    def call(self, fn: Callable, *args, **kwargs):
        """Run ``fn`` on the owner thread and wait for its result.

        Executes inline when already on the owner thread. Raises
        ``DispatcherStoppedError`` when called from another thread while the
        loop is not running, since nothing would ever complete the task.
        """
        if self.is_owner_thread():
            return fn(*args, **kwargs)
        with self._lock:
            if not self._running:
                raise DispatcherStoppedError("UI thread is not running")
            future = self.post(fn, *args, **kwargs)
        return future.result()

    def run(self):
        """Process queued tasks on the calling thread until ``stop()``.

        Tasks still queued when the loop ends are run before returning.
        """
        self._owner_ident = threading.get_ident()
        with self._lock:
            self._running = True
        try:
            while True:
                # Timed get so Ctrl+C reaches the owner thread on Windows
                try:
                    item = self._tasks.get(timeout=0.2)
                except queue.Empty:
                    continue
                if item is _STOP:
                    break
                self._run_task(*item)
        finally:
            with self._lock:
                self._running = False
            self.run_pending()

    def run_pending(self):
        """Process every task queued so far without blocking."""
        while True:
            try:
                item = self._tasks.get_nowait()
            except queue.Empty:
                return
            if item is _STOP:
                continue
            self._run_task(*item)

    def stop(self):
        self._tasks.put(_STOP)

    @staticmethod
    def _run_task(future: Future, fn: Callable, args, kwargs):
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = fn(*args, **kwargs)
        except Exception as exc:
            logger.debug("Task %r raised %r", fn, exc)
            future.set_exception(exc)
        else:
            future.set_result(result)
