"""Exception types raised while recording and replaying UI tests."""


class UIReplayError(RuntimeError):
    """Base class for record/replay failures."""


class ConfigError(UIReplayError, ValueError):
    """Raised when a configuration value cannot be interpreted."""


class CaptureError(UIReplayError):
    """Raised when the screen could not be captured."""


class WindowNotFoundError(UIReplayError):
    """Raised when a target window cannot be located or is not visible."""


class ReferenceImageError(UIReplayError):
    """Raised when a stored reference screenshot cannot be read."""


class ScreenshotMismatchError(UIReplayError, AssertionError):
    """A live capture did not match its reference screenshot."""


class DispatcherStoppedError(UIReplayError):
    """Raised when work is handed to a UI thread whose loop is not running."""
