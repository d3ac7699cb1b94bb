"""Tests for injector.py with pynput's controllers mocked."""

from unittest.mock import MagicMock, patch

import pytest

from uireplay.models import MouseButton


@pytest.fixture
def injector():
    mock_mouse = MagicMock()
    mock_keyboard = MagicMock()
    with patch("uireplay.injector._PYNPUT_AVAILABLE", True), \
         patch("uireplay.injector.mouse", mock_mouse), \
         patch("uireplay.injector.pynput_keyboard", mock_keyboard):
        from uireplay.injector import InputInjector
        yield InputInjector(), mock_mouse, mock_keyboard


class TestInputInjector:
    def test_keys_by_virtual_key_code(self, injector):
        inj, _, kb = injector
        inj.press_key(65)
        inj.release_key(65)
        kb.KeyCode.from_vk.assert_called_with(65)
        controller = kb.Controller.return_value
        controller.press.assert_called_once_with(kb.KeyCode.from_vk.return_value)
        controller.release.assert_called_once_with(kb.KeyCode.from_vk.return_value)

    def test_buttons(self, injector):
        inj, mouse, _ = injector
        inj.press_button(MouseButton.SECONDARY)
        inj.release_button(MouseButton.TERTIARY)
        controller = mouse.Controller.return_value
        controller.press.assert_called_once_with(mouse.Button.right)
        controller.release.assert_called_once_with(mouse.Button.middle)

    def test_move_and_scroll(self, injector):
        inj, mouse, _ = injector
        inj.move_cursor(10, 20)
        inj.scroll(3)
        controller = mouse.Controller.return_value
        assert controller.position == (10, 20)
        controller.scroll.assert_called_once_with(0, -3)

    def test_requires_pynput(self):
        with patch("uireplay.injector._PYNPUT_AVAILABLE", False):
            from uireplay.injector import InputInjector
            with pytest.raises(RuntimeError, match="pynput"):
                InputInjector()
