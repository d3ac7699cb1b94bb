"""Data models for recorded input, recorded steps and screenshot comparison."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Tuple, Union


class Phase(Enum):
    PRESSED = "Pressed"
    RELEASED = "Released"


class MouseButton(Enum):
    PRIMARY = "Primary"
    SECONDARY = "Secondary"
    TERTIARY = "Tertiary"


class EventKind(Enum):
    KEY = "Key"
    MOUSE_BUTTON = "MouseButton"
    MOUSE_MOTION = "MouseMotion"
    MOUSE_WHEEL = "MouseWheel"


class StepKind(Enum):
    KEY = "Key"
    POINTER = "Pointer"
    MOTION = "Motion"
    WHEEL = "Wheel"
    SCREENSHOT = "Screenshot"


class RecordingMode(Enum):
    ABSOLUTE = "Absolute"
    RELATIVE = "Relative"


class RecordingState(Enum):
    IDLE = "Idle"
    RECORDING = "Recording"


# ---------------------------------------------------------------------------
# Input events (eq=False: two events are only ever equal if they are the same
# occurrence)
# ---------------------------------------------------------------------------

@dataclass(frozen=True, eq=False)
class KeyEvent:
    code: int
    phase: Phase
    timestamp: float
    kind: EventKind = field(default=EventKind.KEY, init=False)


@dataclass(frozen=True, eq=False)
class MouseButtonEvent:
    x: int
    y: int
    button: MouseButton
    phase: Phase
    timestamp: float
    kind: EventKind = field(default=EventKind.MOUSE_BUTTON, init=False)


@dataclass(frozen=True, eq=False)
class MouseMotionEvent:
    x: int
    y: int
    timestamp: float
    kind: EventKind = field(default=EventKind.MOUSE_MOTION, init=False)


@dataclass(frozen=True, eq=False)
class MouseWheelEvent:
    rotation: int
    timestamp: float
    kind: EventKind = field(default=EventKind.MOUSE_WHEEL, init=False)


InputEvent = Union[KeyEvent, MouseButtonEvent, MouseMotionEvent, MouseWheelEvent]


@dataclass(frozen=True)
class WindowContext:
    """The frontmost window as observed when an event arrived."""
    name: Optional[str]
    origin_x: int
    origin_y: int


# ---------------------------------------------------------------------------
# Recorded steps
# ---------------------------------------------------------------------------

class _PositionedStep:
    """Screen-to-window conversion shared by steps that carry coordinates."""

    def relative_x(self) -> int:
        if self.window is not None:
            return self.x - self.window.origin_x
        return self.x

    def relative_y(self) -> int:
        if self.window is not None:
            return self.y - self.window.origin_y
        return self.y


@dataclass(frozen=True)
class KeyStep:
    timestamp: float
    code: int
    phase: Phase
    window: Optional[WindowContext] = None
    event: Optional[KeyEvent] = field(default=None, repr=False, compare=False)
    kind: StepKind = field(default=StepKind.KEY, init=False)


@dataclass(frozen=True)
class PointerStep(_PositionedStep):
    timestamp: float
    x: int
    y: int
    button: MouseButton
    phase: Phase
    window: Optional[WindowContext] = None
    event: Optional[MouseButtonEvent] = field(default=None, repr=False, compare=False)
    kind: StepKind = field(default=StepKind.POINTER, init=False)


@dataclass(frozen=True)
class MotionStep(_PositionedStep):
    timestamp: float
    x: int
    y: int
    window: Optional[WindowContext] = None
    event: Optional[MouseMotionEvent] = field(default=None, repr=False, compare=False)
    kind: StepKind = field(default=StepKind.MOTION, init=False)


@dataclass(frozen=True)
class WheelStep:
    timestamp: float
    rotation: int
    window: Optional[WindowContext] = None
    event: Optional[MouseWheelEvent] = field(default=None, repr=False, compare=False)
    kind: StepKind = field(default=StepKind.WHEEL, init=False)


@dataclass(frozen=True)
class ScreenshotStep:
    timestamp: float
    image_path: str
    event: None = field(default=None, repr=False, compare=False)
    kind: StepKind = field(default=StepKind.SCREENSHOT, init=False)

    @property
    def file_name(self) -> str:
        return self.image_path.replace("\\", "/").rsplit("/", 1)[-1]


RecordedStep = Union[KeyStep, PointerStep, MotionStep, WheelStep, ScreenshotStep]


def describe_step(step: RecordedStep) -> str:
    """Human-readable description of a recorded step."""
    if step.kind == StepKind.KEY:
        return f"Key {step.phase.value.lower()}: {step.code}"
    elif step.kind == StepKind.POINTER:
        return f"{step.button.value} {step.phase.value.lower()} at ({step.x}, {step.y})"
    elif step.kind == StepKind.MOTION:
        return f"Move to ({step.x}, {step.y})"
    elif step.kind == StepKind.WHEEL:
        return f"Wheel {step.rotation}"
    elif step.kind == StepKind.SCREENSHOT:
        return f"Screenshot {step.file_name}"
    return "Unknown step"


@dataclass
class Session:
    """A recording session: the state machine's state plus its steps."""
    id: int
    name: str = ""
    mode: RecordingMode = RecordingMode.RELATIVE
    auto_raise: bool = False
    state: RecordingState = RecordingState.IDLE
    start_time: float = 0.0
    output_dir: Optional[str] = None
    steps: list = field(default_factory=list)
    # None means the next motion sample is accepted unconditionally
    last_motion_time: Optional[float] = None

    @property
    def is_recording(self) -> bool:
        return self.state == RecordingState.RECORDING

    @property
    def last_step(self) -> Optional[RecordedStep]:
        return self.steps[-1] if self.steps else None

    def reset(self, start_time: float, output_dir: Optional[str] = None, name: str = ""):
        self.steps = []
        self.start_time = start_time
        self.output_dir = output_dir
        self.last_motion_time = None
        if name:
            self.name = name

    def add_step(self, step: RecordedStep) -> bool:
        """Append a step unless it repeats the last step's event.

        Returns True if the step was appended.
        """
        last = self.last_step
        if last is not None and last.event is not None and last.event is step.event:
            return False
        self.steps.append(step)
        return True

    def timed_steps(self) -> Iterator[Tuple[int, RecordedStep]]:
        """Yield (delay_ms, step) pairs, the delay measured from the previous
        step or from the session start for the first one."""
        previous = self.start_time
        for step in self.steps:
            yield int(round((step.timestamp - previous) * 1000)), step
            previous = step.timestamp


@dataclass
class ComparisonResult:
    """Outcome of comparing a live capture against a reference image."""
    score: float
    matched: bool
    delta: Optional[object] = None  # PIL.Image.Image
    dimensions_match: bool = True
