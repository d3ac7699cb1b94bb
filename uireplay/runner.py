"""Replay runtime called by generated test scripts."""

import logging
import os
import time
from typing import List, Optional

from uireplay.capture import ScreenCapture, load_image
from uireplay.comparator import PerceptualComparator
from uireplay.errors import (
    CaptureError,
    DispatcherStoppedError,
    ReferenceImageError,
    ScreenshotMismatchError,
    UIReplayError,
    WindowNotFoundError,
)
from uireplay.models import ComparisonResult, MouseButton, WindowContext
from uireplay.policy import CapturePolicy, CapturePolicyConfig
from uireplay.settings import AppSettings
from uireplay.uithread import UiThread
from uireplay.window import WindowLocator

logger = logging.getLogger(__name__)


# Returned by Player._on_dispatcher when nothing ran on the dispatcher
_NOT_DISPATCHED = object()


def _noop():
    pass


class ErrorCollector:
    """Accumulates failures so one mismatch does not hide the next."""

    def __init__(self):
        self.errors: List[Exception] = []

    def add_error(self, error: Exception):
        logger.error("%s", error)
        self.errors.append(error)

    def verify(self):
        """Raise a single AssertionError listing every collected failure."""
        if not self.errors:
            return
        lines = [f"{len(self.errors)} replay failure(s):"]
        lines.extend(f"  - {error}" for error in self.errors)
        raise AssertionError("\n".join(lines))


class Player:
    """Replays recorded steps against the live application.

    Every injected action is followed by ``wait_for_event()`` so the next
    step only starts once the previous one has been delivered.
    """

    def __init__(
        self,
        image_dir: str,
        collector: ErrorCollector,
        default_threshold: Optional[float] = None,
        settings: Optional[AppSettings] = None,
        locator: Optional[WindowLocator] = None,
        capture: Optional[ScreenCapture] = None,
        injector=None,
        dispatcher: Optional[UiThread] = None,
        policy: Optional[CapturePolicy] = None,
    ):
        if image_dir is None:
            raise ValueError("image_dir is None")
        if collector is None:
            raise ValueError("collector is None")
        self.image_dir = image_dir
        self.collector = collector
        self.settings = settings or AppSettings()
        self.default_threshold = (
            self.settings.compare_threshold if default_threshold is None else default_threshold
        )
        self.locator = locator or WindowLocator()
        self.capture = capture or ScreenCapture(self.locator)
        if injector is None:
            from uireplay.injector import InputInjector
            injector = InputInjector()
        self.injector = injector
        self.dispatcher = dispatcher
        self.policy = policy or CapturePolicy(CapturePolicyConfig.from_env())
        self.comparator = self.policy.comparator

    # ---- Synchronization ----

    def wait_for_event(self):
        """Block until the input injected so far has been delivered.

        With a running dispatcher this round-trips a no-op through its queue,
        otherwise it waits for the frontmost window's message queue.
        """
        if self._on_dispatcher(_noop) is not _NOT_DISPATCHED:
            return
        self.locator.wait_until_idle(self.settings.event_sync_timeout_ms)

    def delay(self, milli: int):
        if milli > 0:
            time.sleep(milli / 1000.0)

    def wait_for_window(self):
        """Poll until some window is active; models application start-up."""
        poll = self.settings.wait_for_window_poll_ms / 1000.0
        while self.locator.current_window() is None:
            time.sleep(poll)

    def _current_focused_window(self) -> WindowContext:
        deadline = time.monotonic() + self.settings.window_timeout_ms / 1000.0
        poll = self.settings.window_poll_ms / 1000.0
        while time.monotonic() < deadline:
            window = self.locator.current_window()
            if window is not None and self.locator.is_showing():
                return window
            time.sleep(poll)
        raise WindowNotFoundError("Window not visible")

    def raise_window(self, name: str):
        """Bring the window called ``name`` to the front unless it already is."""
        if name is None:
            raise ValueError("name is None")
        handle = self.locator.find_window(name)
        if not handle:
            raise WindowNotFoundError(f"{name} not found")
        if not self.locator.is_active(handle):
            self.locator.activate(handle)

    # ---- Keyboard / wheel ----

    def key_press(self, *args):
        """``key_press(code)`` or ``key_press(window_name, code)``."""
        window_name, (code,) = self._split_window(args, 1)
        self._maybe_raise(window_name)
        self.injector.press_key(code)
        self.wait_for_event()

    def key_release(self, *args):
        """``key_release(code)`` or ``key_release(window_name, code)``."""
        window_name, (code,) = self._split_window(args, 1)
        self._maybe_raise(window_name)
        self.injector.release_key(code)
        self.wait_for_event()

    def mouse_wheel(self, *args):
        """``mouse_wheel(amount)`` or ``mouse_wheel(window_name, amount)``."""
        window_name, (amount,) = self._split_window(args, 1)
        self._maybe_raise(window_name)
        self.injector.scroll(amount)
        self.wait_for_event()

    # ---- Mouse ----

    def mouse_move(self, x: int, y: int):
        self.injector.move_cursor(x, y)
        self.wait_for_event()

    def mouse_move_relative(self, *args):
        """``mouse_move_relative([window_name,] x, y)``."""
        window_name, (x, y) = self._split_window(args, 2)
        self._maybe_raise(window_name)
        window = self._current_focused_window()
        self.injector.move_cursor(window.origin_x + x, window.origin_y + y)
        self.wait_for_event()

    def mouse_press(self, x: int, y: int, button: MouseButton = MouseButton.PRIMARY):
        self.mouse_move(x, y)
        self.injector.press_button(button)
        self.wait_for_event()

    def mouse_release(self, x: int, y: int, button: MouseButton = MouseButton.PRIMARY):
        self.mouse_move(x, y)
        self.injector.release_button(button)
        self.wait_for_event()

    def mouse_press_relative(self, *args):
        """``mouse_press_relative([window_name,] x, y, button)``."""
        window_name, (x, y, button) = self._split_window(args, 3)
        self._maybe_raise(window_name)
        self.mouse_move_relative(x, y)
        self.injector.press_button(button)
        self.wait_for_event()

    def mouse_release_relative(self, *args):
        """``mouse_release_relative([window_name,] x, y, button)``."""
        window_name, (x, y, button) = self._split_window(args, 3)
        self._maybe_raise(window_name)
        self.mouse_move_relative(x, y)
        self.injector.release_button(button)
        self.wait_for_event()

    # ---- Screenshots ----

    def take_screenshot(self):
        image = self._on_dispatcher(self.capture.capture)
        if image is _NOT_DISPATCHED:
            image = self.capture.capture()
        return image

    def compare(self, file_name: str, minimum_score: Optional[float] = None) -> Optional[ComparisonResult]:
        """Assert the live window matches the stored screenshot ``file_name``.

        Failures are collected rather than raised.
        """
        threshold = self.default_threshold if minimum_score is None else minimum_score
        full_path = os.path.join(self.image_dir, file_name)
        try:
            target = load_image(full_path)
        except ReferenceImageError as exc:
            self.collector.add_error(exc)
            return None

        retries = max(1, self.settings.compare_retries)
        interval = self.settings.compare_retry_interval_ms / 1000.0
        source = None
        result = None
        for attempt in range(retries):
            try:
                source = self.take_screenshot()
            except CaptureError as exc:
                self.collector.add_error(exc)
                return None
            result = self.comparator.compare(source, target, threshold, with_delta=False)
            logger.debug(
                "%s attempt %d: signal=%.2f dB, threshold %.2f",
                file_name, attempt + 1, result.score, threshold,
            )
            if result.matched:
                return result
            if attempt < retries - 1:
                time.sleep(interval)

        try:
            decision = self.policy.resolve(full_path, source, target)
        except OSError as exc:
            self.collector.add_error(UIReplayError(f"Failed writing images for {file_name}: {exc}"))
            return result
        if decision.failed:
            self.collector.add_error(ScreenshotMismatchError(decision.message))
        else:
            logger.info(decision.message)
        return result

    # ---- Helpers ----

    @staticmethod
    def _split_window(args, arity: int):
        if len(args) == arity + 1:
            return args[0], args[1:]
        if len(args) == arity:
            return None, args
        raise TypeError(f"expected {arity} or {arity + 1} arguments, got {len(args)}")

    def _on_dispatcher(self, fn):
        """Result of ``fn`` run on the dispatcher, or ``_NOT_DISPATCHED``
        when there is no running dispatcher to run it."""
        if self.dispatcher is None:
            return _NOT_DISPATCHED
        try:
            return self.dispatcher.call(fn)
        except DispatcherStoppedError:
            logger.debug("Dispatcher not running, continuing on the calling thread")
            return _NOT_DISPATCHED

    def _maybe_raise(self, window_name: Optional[str]):
        if window_name is not None:
            self.raise_window(window_name)
