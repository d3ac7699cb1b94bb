"""Tests for window.py and capture.py with the platform calls patched out."""

from unittest.mock import MagicMock, patch

import pytest
from PIL import Image

from uireplay.capture import ScreenCapture, load_image, save_image
from uireplay.errors import CaptureError, ReferenceImageError
from uireplay.models import WindowContext
from uireplay.window import WindowLocator


@patch("uireplay.window._get_window_title", return_value="Notepad")
@patch("uireplay.window._get_window_rect", return_value=(-10, 20, 300, 400))
@patch("uireplay.window._get_foreground_hwnd", return_value=7)
class TestWindowLocator:
    def test_current_window(self, *mocks):
        assert WindowLocator().current_window() == WindowContext("Notepad", -10, 20)

    def test_untitled_window_has_no_name(self, mock_hwnd, mock_rect, mock_title):
        mock_title.return_value = ""
        assert WindowLocator().current_window().name is None

    def test_no_foreground_window(self, mock_hwnd, *mocks):
        mock_hwnd.return_value = 0
        locator = WindowLocator()
        assert locator.current_window() is None
        assert locator.current_bounds() is None
        assert not locator.is_showing()

    def test_is_active(self, *mocks):
        locator = WindowLocator()
        assert locator.is_active(7)
        assert not locator.is_active(8)
        assert not locator.is_active(0)

    def test_activate(self, *mocks):
        with patch("uireplay.window._activate_window") as mock_activate:
            WindowLocator().activate(9)
        mock_activate.assert_called_once_with(9)

    def test_wait_until_idle_round_trips_foreground_window(self, *mocks):
        with patch("uireplay.window._send_null_message", return_value=True) as mock_send:
            assert WindowLocator().wait_until_idle(500)
        mock_send.assert_called_once_with(7, 500)

    def test_wait_until_idle_reports_hung_window(self, *mocks):
        with patch("uireplay.window._send_null_message", return_value=False):
            assert not WindowLocator().wait_until_idle(500)

    def test_wait_until_idle_without_window(self, mock_hwnd, *mocks):
        mock_hwnd.return_value = 0
        with patch("uireplay.window._send_null_message") as mock_send:
            assert WindowLocator().wait_until_idle(500)
        mock_send.assert_not_called()


class TestScreenCapture:
    @patch("uireplay.capture.ImageGrab.grab")
    def test_grabs_window_bounds(self, mock_grab):
        mock_grab.return_value = Image.new("RGBA", (2, 2))
        locator = MagicMock()
        locator.current_bounds.return_value = (0, 0, 2, 2)

        image = ScreenCapture(locator).capture()

        mock_grab.assert_called_once_with(bbox=(0, 0, 2, 2), all_screens=True)
        assert image.mode == "RGB"

    @patch("uireplay.capture.ImageGrab.grab", side_effect=OSError("no display"))
    def test_grab_failure(self, mock_grab):
        with pytest.raises(CaptureError):
            ScreenCapture(MagicMock()).capture()


class TestImageFiles:
    def test_save_and_load(self, tmp_path):
        path = str(tmp_path / "a.png")
        save_image(Image.new("RGB", (3, 2), (1, 2, 3)), path)
        image = load_image(path)
        assert image.size == (3, 2)
        assert image.getpixel((0, 0)) == (1, 2, 3)

    def test_load_not_an_image(self, tmp_path):
        path = tmp_path / "a.png"
        path.write_text("hello")
        with pytest.raises(ReferenceImageError, match="Failed reading image file"):
            load_image(str(path))
