"""pytest script generator for recorded sessions."""

import os
from typing import Optional

from uireplay.models import (
    Phase,
    RecordedStep,
    RecordingMode,
    Session,
    StepKind,
)
from uireplay.settings import AppSettings

# Virtual-key codes whose text is not simply chr(code)
_KEY_NAMES = {
    0x08: "Backspace",
    0x09: "Tab",
    0x0D: "Enter",
    0x10: "Shift",
    0x11: "Ctrl",
    0x12: "Alt",
    0x14: "Caps Lock",
    0x1B: "Escape",
    0x20: "Space",
    0x21: "Page Up",
    0x22: "Page Down",
    0x23: "End",
    0x24: "Home",
    0x25: "Left",
    0x26: "Up",
    0x27: "Right",
    0x28: "Down",
    0x2D: "Insert",
    0x2E: "Delete",
}


def key_text(code: int) -> str:
    """Readable name for a virtual-key code, e.g. 65 -> "A", 0x70 -> "F1"."""
    if code in _KEY_NAMES:
        return _KEY_NAMES[code]
    if 0x30 <= code <= 0x39 or 0x41 <= code <= 0x5A:
        return chr(code)
    if 0x70 <= code <= 0x87:
        return f"F{code - 0x6F}"
    return f"VK {code}"


class CodeGenerator:
    """Generates a runnable pytest module from a recorded session."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self.settings = settings or AppSettings()

    def generate_header(self, session: Session) -> str:
        """Imports, the screenshot directory and the error-collector fixture."""
        lines = [
            f'"""Recorded UI test {session.name or session.id}.',
            "",
            f"Mode: {session.mode.value}. Reference screenshots live next to this file.",
            '"""',
            "",
            "import os",
            "",
            "import pytest",
            "",
            "from uireplay.models import MouseButton",
            "from uireplay.runner import ErrorCollector, Player",
            "",
            "SCREENSHOT_DIR = os.path.dirname(os.path.abspath(__file__))",
            "",
            "",
            "@pytest.fixture",
            "def collector():",
            "    errors = ErrorCollector()",
            "    yield errors",
            "    errors.verify()",
            "",
        ]
        return "\n".join(lines)

    def generate_step_line(
        self,
        step: RecordedStep,
        mode: RecordingMode = RecordingMode.RELATIVE,
        auto_raise: bool = False,
    ) -> str:
        """Generate the playback call for a single step."""
        if step.kind == StepKind.KEY:
            return self._generate_key(step, mode, auto_raise)
        elif step.kind == StepKind.POINTER:
            return self._generate_pointer(step, mode, auto_raise)
        elif step.kind == StepKind.MOTION:
            return self._generate_motion(step, mode, auto_raise)
        elif step.kind == StepKind.WHEEL:
            return self._generate_wheel(step, mode, auto_raise)
        elif step.kind == StepKind.SCREENSHOT:
            return f"    tools.compare({step.file_name!r})"
        return f"    # Unknown step kind: {step.kind}"

    def _window_arg(self, step: RecordedStep, mode: RecordingMode, auto_raise: bool) -> str:
        """Leading window-name argument for auto-raise in relative mode."""
        window = getattr(step, "window", None)
        if auto_raise and mode == RecordingMode.RELATIVE and window is not None and window.name:
            return f"{window.name!r}, "
        return ""

    def _generate_key(self, step, mode, auto_raise) -> str:
        call = "key_press" if step.phase == Phase.PRESSED else "key_release"
        window = self._window_arg(step, mode, auto_raise)
        return f"    tools.{call}({window}{step.code})  # {key_text(step.code)}"

    def _generate_wheel(self, step, mode, auto_raise) -> str:
        window = self._window_arg(step, mode, auto_raise)
        return f"    tools.mouse_wheel({window}{step.rotation})"

    def _generate_motion(self, step, mode, auto_raise) -> str:
        if mode == RecordingMode.ABSOLUTE:
            return f"    tools.mouse_move({step.x}, {step.y})"
        window = self._window_arg(step, mode, auto_raise)
        return (
            f"    tools.mouse_move_relative({window}"
            f"{step.relative_x()}, {step.relative_y()})"
        )

    def _generate_pointer(self, step, mode, auto_raise) -> str:
        call = "mouse_press" if step.phase == Phase.PRESSED else "mouse_release"
        button = f"MouseButton.{step.button.name}"
        if mode == RecordingMode.ABSOLUTE:
            return f"    tools.{call}({step.x}, {step.y}, {button})"
        window = self._window_arg(step, mode, auto_raise)
        return (
            f"    tools.{call}_relative({window}"
            f"{step.relative_x()}, {step.relative_y()}, {button})"
        )

    def generate_test(self, session: Session) -> str:
        """Generate the ``test_run`` function: a delay plus one call per step."""
        lines = [
            "def test_run(collector):",
            "    tools = Player(SCREENSHOT_DIR, collector)",
            "    tools.wait_for_window()",
        ]
        speed = self.settings.replay_speed_multiplier
        for delay_ms, step in session.timed_steps():
            lines.append(f"    tools.delay({int(delay_ms * speed)})")
            lines.append(self.generate_step_line(step, session.mode, session.auto_raise))
        return "\n".join(lines)

    def generate_script(self, session: Session) -> str:
        """Generate a complete pytest module for a session."""
        return "\n".join([self.generate_header(session), "", self.generate_test(session), ""])

    def write_script(self, session: Session, file_name: Optional[str] = None) -> str:
        """Write the script into the session's output directory; returns its path."""
        directory = session.output_dir or self.settings.output_root
        path = os.path.join(directory, file_name or self.settings.script_file_name)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.generate_script(session))
        return path
