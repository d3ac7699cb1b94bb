"""Synthetic input via pynput controllers."""

try:
    from pynput import mouse, keyboard as pynput_keyboard
    _PYNPUT_AVAILABLE = True
except ImportError:
    _PYNPUT_AVAILABLE = False
    mouse = None  # type: ignore
    pynput_keyboard = None  # type: ignore

from uireplay.models import MouseButton


def _model_button_to_pynput(button: MouseButton):
    mapping = {
        MouseButton.PRIMARY: mouse.Button.left,
        MouseButton.SECONDARY: mouse.Button.right,
        MouseButton.TERTIARY: mouse.Button.middle,
    }
    return mapping[button]


class InputInjector:
    """Presses keys, moves the cursor and clicks through pynput."""

    def __init__(self):
        if not _PYNPUT_AVAILABLE:
            raise RuntimeError(
                "pynput is not available. Install it with: pip install pynput"
            )
        self._keyboard = pynput_keyboard.Controller()
        self._mouse = mouse.Controller()

    def press_key(self, code: int):
        self._keyboard.press(pynput_keyboard.KeyCode.from_vk(code))

    def release_key(self, code: int):
        self._keyboard.release(pynput_keyboard.KeyCode.from_vk(code))

    def move_cursor(self, x: int, y: int):
        self._mouse.position = (x, y)

    def press_button(self, button: MouseButton):
        self._mouse.press(_model_button_to_pynput(button))

    def release_button(self, button: MouseButton):
        self._mouse.release(_model_button_to_pynput(button))

    def scroll(self, amount: int):
        # Positive amounts scroll down, pynput scrolls up for positive dy
        self._mouse.scroll(0, -amount)
