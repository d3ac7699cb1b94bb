"""Active-window lookup and window raising."""

import logging
from typing import Optional, Tuple

from uireplay.models import WindowContext

logger = logging.getLogger(__name__)

# Platform-specific window helpers. Outside Windows there is no active window,
# so recorded coordinates stay in screen space.
try:
    import ctypes
    _user32 = ctypes.windll.user32
    from ctypes import wintypes

    _SW_RESTORE = 9
    _WM_NULL = 0x0000
    _SMTO_ABORTIFHUNG = 0x0002

    def _get_foreground_hwnd() -> int:
        return _user32.GetForegroundWindow() or 0

    def _get_window_title(hwnd: int) -> str:
        """Return the title of the given window."""
        length = _user32.GetWindowTextLengthW(hwnd)
        if length == 0:
            return ""
        buf = ctypes.create_unicode_buffer(length + 1)
        _user32.GetWindowTextW(hwnd, buf, length + 1)
        return buf.value

    def _get_window_rect(hwnd: int) -> Optional[Tuple[int, int, int, int]]:
        """Return (left, top, right, bottom) in screen coordinates."""
        rect = wintypes.RECT()
        if not _user32.GetWindowRect(hwnd, ctypes.byref(rect)):
            return None
        return rect.left, rect.top, rect.right, rect.bottom

    def _find_window(title: str) -> int:
        return _user32.FindWindowW(None, title) or 0

    def _is_window_visible(hwnd: int) -> bool:
        return bool(_user32.IsWindowVisible(hwnd))

    def _activate_window(hwnd: int):
        _user32.ShowWindow(hwnd, _SW_RESTORE)
        _user32.SetForegroundWindow(hwnd)

    def _send_null_message(hwnd: int, timeout_ms: int) -> bool:
        """Round-trip WM_NULL through the window's message queue.

        Returns once the window has processed the input queued ahead of it,
        or False when it did not answer within ``timeout_ms``.
        """
        result = ctypes.c_size_t()
        return bool(_user32.SendMessageTimeoutW(
            hwnd, _WM_NULL, 0, 0, _SMTO_ABORTIFHUNG, timeout_ms, ctypes.byref(result),
        ))

except (ImportError, AttributeError, OSError, ValueError):
    def _get_foreground_hwnd() -> int:
        return 0

    def _get_window_title(hwnd: int) -> str:
        return ""

    def _get_window_rect(hwnd: int) -> Optional[Tuple[int, int, int, int]]:
        return None

    def _find_window(title: str) -> int:
        return 0

    def _is_window_visible(hwnd: int) -> bool:
        return False

    def _activate_window(hwnd: int):
        pass

    def _send_null_message(hwnd: int, timeout_ms: int) -> bool:
        return True


class WindowLocator:
    """Finds the frontmost window and windows by name."""

    def current_window(self) -> Optional[WindowContext]:
        """Name and screen origin of the frontmost window, or None."""
        hwnd = _get_foreground_hwnd()
        if not hwnd:
            return None
        rect = _get_window_rect(hwnd)
        if rect is None:
            return None
        title = _get_window_title(hwnd)
        return WindowContext(name=title or None, origin_x=rect[0], origin_y=rect[1])

    def current_bounds(self) -> Optional[Tuple[int, int, int, int]]:
        """Screen rectangle of the frontmost window, or None."""
        hwnd = _get_foreground_hwnd()
        if not hwnd:
            return None
        return _get_window_rect(hwnd)

    def is_showing(self) -> bool:
        hwnd = _get_foreground_hwnd()
        return bool(hwnd) and _is_window_visible(hwnd)

    def find_window(self, name: str) -> int:
        """Handle of the top-level window titled ``name`` (0 if none)."""
        return _find_window(name)

    def is_active(self, handle: int) -> bool:
        return handle != 0 and handle == _get_foreground_hwnd()

    def activate(self, handle: int):
        logger.debug("Raising window %s", handle)
        _activate_window(handle)

    def wait_until_idle(self, timeout_ms: int) -> bool:
        """Wait until the frontmost window has handled pending input.

        True when there is no window to wait for.
        """
        hwnd = _get_foreground_hwnd()
        if not hwnd:
            return True
        if _send_null_message(hwnd, timeout_ms):
            return True
        logger.debug("Window %s did not respond within %d ms", hwnd, timeout_ms)
        return False
