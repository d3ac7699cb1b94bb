"""Recording engine: turns a raw input event feed into recorded steps.

The engine itself is toolkit-free: ``Recorder.handle_event`` takes an explicit
``Session`` and an ``InputEvent``. ``InputListener`` adapts pynput's mouse and
keyboard listeners to that interface.
"""

import logging
import os
import time
from typing import Callable, Optional

try:
    from pynput import mouse, keyboard as pynput_keyboard
    _PYNPUT_AVAILABLE = True
except ImportError:
    _PYNPUT_AVAILABLE = False
    mouse = None  # type: ignore
    pynput_keyboard = None  # type: ignore

from uireplay.capture import save_image
from uireplay.errors import CaptureError
from uireplay.models import (
    EventKind,
    KeyEvent,
    KeyStep,
    MotionStep,
    MouseButton,
    MouseButtonEvent,
    MouseMotionEvent,
    MouseWheelEvent,
    Phase,
    PointerStep,
    RecordedStep,
    RecordingState,
    ScreenshotStep,
    Session,
    WheelStep,
    WindowContext,
)
from uireplay.settings import AppSettings
from uireplay.uithread import UiThread

logger = logging.getLogger(__name__)

# Windows virtual-key codes for F1 / F2
DEFAULT_TOGGLE_CODE = 0x70
DEFAULT_SCREENSHOT_CODE = 0x71


class Recorder:
    """Start/stop state machine, motion sampling, coalescing and screenshots.

    Collaborators are plain callables so the engine can be driven without a
    live desktop:

    * ``window_locator()`` -> ``WindowContext`` or None, queried once per event
    * ``capture()`` -> image of the active window
    * ``clock()`` -> seconds since the epoch
    * ``on_stop(session)`` receives the completed session
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        window_locator: Optional[Callable[[], Optional[WindowContext]]] = None,
        capture: Optional[Callable[[], object]] = None,
        clock: Callable[[], float] = time.time,
        on_stop: Optional[Callable[[Session], None]] = None,
        on_step: Optional[Callable[[RecordedStep], None]] = None,
        toggle_code: int = DEFAULT_TOGGLE_CODE,
        screenshot_code: int = DEFAULT_SCREENSHOT_CODE,
    ):
        self.settings = settings or AppSettings()
        self.window_locator = window_locator
        self.capture = capture
        self.clock = clock
        self.on_stop = on_stop
        self.on_step = on_step
        self.toggle_code = toggle_code
        self.screenshot_code = screenshot_code
        self._session_counter = 0

    def new_session(self) -> Session:
        """Create an idle session configured from the settings."""
        self._session_counter += 1
        return Session(
            id=self._session_counter,
            mode=self.settings.get_recording_mode(),
            auto_raise=self.settings.auto_raise,
        )

    # ---- State machine ----

    def start(self, session: Session) -> Session:
        """Idle -> Recording: clear steps, stamp the start time, make the output dir."""
        now = self.clock()
        name = f"{self.settings.recording_prefix}_{int(now * 1000)}"
        output_dir = os.path.join(self.settings.output_root, name)
        os.makedirs(output_dir, exist_ok=True)

        session.reset(start_time=now, output_dir=output_dir, name=name)
        session.state = RecordingState.RECORDING
        logger.info("Start recording into %s", output_dir)
        return session

    def stop(self, session: Session) -> Session:
        """Recording -> Idle: hand the completed steps to ``on_stop``."""
        session.state = RecordingState.IDLE
        logger.info("Stop recording: %d steps", len(session.steps))
        if self.on_stop:
            self.on_stop(session)
        return session

    def toggle(self, session: Session) -> Session:
        if session.is_recording:
            return self.stop(session)
        return self.start(session)

    # ---- Event intake ----

    def handle_event(self, session: Session, event) -> Optional[RecordedStep]:
        """Process one input event; returns the step appended, if any."""
        if event.kind == EventKind.KEY:
            return self._handle_key(session, event)
        elif event.kind == EventKind.MOUSE_MOTION:
            return self._handle_motion(session, event)
        elif event.kind == EventKind.MOUSE_BUTTON:
            if not session.is_recording:
                return None
            step = PointerStep(
                timestamp=self._step_time(session, event.timestamp),
                x=event.x,
                y=event.y,
                button=event.button,
                phase=event.phase,
                window=self._current_window(),
                event=event,
            )
            return self._append(session, step)
        elif event.kind == EventKind.MOUSE_WHEEL:
            if not session.is_recording:
                return None
            step = WheelStep(
                timestamp=self._step_time(session, event.timestamp),
                rotation=event.rotation,
                window=self._current_window(),
                event=event,
            )
            return self._append(session, step)
        raise ValueError(f"Unknown event kind: {event.kind}")

    def _handle_key(self, session: Session, event: KeyEvent) -> Optional[RecordedStep]:
        # Any keystroke re-arms motion sampling
        session.last_motion_time = None

        if event.code in (self.toggle_code, self.screenshot_code):
            if event.phase != Phase.RELEASED:
                return None
            if event.code == self.toggle_code:
                self.toggle(session)
                return None
            if session.is_recording:
                return self.take_screenshot(session)
            return None

        if not session.is_recording:
            return None
        step = KeyStep(
            timestamp=self._step_time(session, event.timestamp),
            code=event.code,
            phase=event.phase,
            window=self._current_window(),
            event=event,
        )
        return self._append(session, step)

    def _handle_motion(self, session: Session, event: MouseMotionEvent) -> Optional[RecordedStep]:
        if not session.is_recording:
            return None
        interval = self.settings.motion_sample_ms / 1000.0
        last = session.last_motion_time
        if last is not None and (event.timestamp - last) < interval:
            return None
        session.last_motion_time = event.timestamp
        step = MotionStep(
            timestamp=self._step_time(session, event.timestamp),
            x=event.x,
            y=event.y,
            window=self._current_window(),
            event=event,
        )
        return self._append(session, step)

    # ---- Screenshots ----

    def take_screenshot(self, session: Session) -> Optional[ScreenshotStep]:
        """Capture the active window into the session's output directory.

        Failures are logged and leave the session recording.
        """
        if self.capture is None:
            logger.warning("No screen capture configured, screenshot skipped")
            return None
        try:
            image = self.capture()
        except CaptureError as exc:
            logger.warning("Screenshot skipped: %s", exc)
            return None
        if image is None:
            logger.warning("Screenshot skipped: nothing captured")
            return None

        now = self.clock()
        path = self._screenshot_path(session, now)
        try:
            save_image(image, path)
        except OSError:
            logger.exception("Failed writing screenshot %s", path)
            return None

        step = ScreenshotStep(timestamp=self._step_time(session, now), image_path=path)
        logger.info("Screenshot %s", os.path.basename(path))
        return self._append(session, step)

    def _screenshot_path(self, session: Session, now: float) -> str:
        directory = session.output_dir or self.settings.output_root
        stem = f"screenshot_{int(now)}"
        path = os.path.join(directory, stem + ".png")
        n = 1
        while os.path.exists(path):
            path = os.path.join(directory, f"{stem}_{n}.png")
            n += 1
        return path

    # ---- Helpers ----

    def _current_window(self) -> Optional[WindowContext]:
        if self.window_locator is None:
            return None
        return self.window_locator()

    @staticmethod
    def _step_time(session: Session, timestamp: float) -> float:
        last = session.last_step
        if last is not None and timestamp < last.timestamp:
            return last.timestamp
        return timestamp

    def _append(self, session: Session, step: RecordedStep) -> Optional[RecordedStep]:
        if not session.add_step(step):
            logger.debug("Dropped repeated delivery of %r", step.event)
            return None
        if self.on_step:
            self.on_step(step)
        return step


# ---------------------------------------------------------------------------
# pynput adapter
# ---------------------------------------------------------------------------

def resolve_key_code(name: str) -> int:
    """Virtual-key code for a key name such as ``"f1"`` or ``"a"``."""
    if len(name) == 1:
        return ord(name.upper())
    if not _PYNPUT_AVAILABLE:
        raise RuntimeError(
            "pynput is not available. Install it with: pip install pynput"
        )
    try:
        return pynput_keyboard.Key[name.lower()].value.vk
    except KeyError:
        raise ValueError(f"Unknown key name: {name!r}") from None


def _key_to_code(key) -> Optional[int]:
    """Convert a pynput Key or KeyCode to a virtual-key code."""
    vk = getattr(key, "vk", None)
    if vk is not None:
        return vk
    value = getattr(key, "value", None)
    if value is not None and getattr(value, "vk", None) is not None:
        return value.vk
    char = getattr(key, "char", None)
    if char:
        return ord(char.upper())
    return None


def _pynput_button_to_model(button) -> Optional[MouseButton]:
    """Convert a pynput Button to our MouseButton enum."""
    name = button.name if hasattr(button, "name") else str(button)
    mapping = {
        "left": MouseButton.PRIMARY,
        "right": MouseButton.SECONDARY,
        "middle": MouseButton.TERTIARY,
    }
    return mapping.get(name)


class InputListener:
    """Feeds pynput mouse/keyboard callbacks into a Recorder.

    Listener callbacks arrive on pynput's own threads; they only build the
    event and hand it to the dispatcher, so the recorder sees a serialized
    stream on the dispatcher's thread.
    """

    def __init__(self, recorder: Recorder, session: Session, dispatcher: UiThread):
        self.recorder = recorder
        self.session = session
        self.dispatcher = dispatcher
        self._mouse_listener = None
        self._keyboard_listener = None

    def start(self):
        """Start the pynput mouse and keyboard listeners."""
        if not _PYNPUT_AVAILABLE:
            raise RuntimeError(
                "pynput is not available. Install it with: pip install pynput"
            )
        self.stop()

        self._mouse_listener = mouse.Listener(
            on_click=self._on_click,
            on_move=self._on_move,
            on_scroll=self._on_scroll,
        )
        self._mouse_listener.daemon = True
        self._mouse_listener.start()

        self._keyboard_listener = pynput_keyboard.Listener(
            on_press=self._on_key_press,
            on_release=self._on_key_release,
        )
        self._keyboard_listener.daemon = True
        self._keyboard_listener.start()

    def stop(self):
        """Stop the pynput mouse and keyboard listeners."""
        if self._mouse_listener is not None:
            self._mouse_listener.stop()
            self._mouse_listener = None
        if self._keyboard_listener is not None:
            self._keyboard_listener.stop()
            self._keyboard_listener = None

    def _deliver(self, event):
        future = self.dispatcher.post(self.recorder.handle_event, self.session, event)
        future.add_done_callback(self._log_failure)

    @staticmethod
    def _log_failure(future):
        exc = future.exception()
        if exc is not None:
            logger.error("Failed to record event: %s", exc, exc_info=exc)

    def _on_key_press(self, key):
        code = _key_to_code(key)
        if code is None:
            return
        self._deliver(KeyEvent(code=code, phase=Phase.PRESSED, timestamp=self.recorder.clock()))

    def _on_key_release(self, key):
        code = _key_to_code(key)
        if code is None:
            return
        self._deliver(KeyEvent(code=code, phase=Phase.RELEASED, timestamp=self.recorder.clock()))

    def _on_click(self, x: int, y: int, button, pressed: bool):
        mb = _pynput_button_to_model(button)
        if mb is None:
            return
        self._deliver(MouseButtonEvent(
            x=int(x),
            y=int(y),
            button=mb,
            phase=Phase.PRESSED if pressed else Phase.RELEASED,
            timestamp=self.recorder.clock(),
        ))

    def _on_move(self, x: int, y: int, *args):
        self._deliver(MouseMotionEvent(x=int(x), y=int(y), timestamp=self.recorder.clock()))

    def _on_scroll(self, x: int, y: int, dx: int, dy: int, *args):
        if not dy:
            return
        # pynput reports dy > 0 for scrolling up; rotation is positive downwards
        self._deliver(MouseWheelEvent(rotation=-int(dy), timestamp=self.recorder.clock()))
