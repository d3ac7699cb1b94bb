"""Settings management for uireplay."""

import json
import logging
import os
from dataclasses import dataclass, asdict

from uireplay.models import RecordingMode

logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = os.path.join(
    os.path.expanduser("~"), ".uireplay", "settings.json"
)


@dataclass
class AppSettings:
    """Application settings with defaults."""
    # Recording
    recording_mode: str = "Relative"  # Relative / Absolute
    auto_raise: bool = False
    toggle_key: str = "f1"
    screenshot_key: str = "f2"
    motion_sample_ms: int = 250

    # Output
    output_root: str = "."
    recording_prefix: str = "recording"
    script_file_name: str = "test_recording.py"

    # Replay
    replay_speed_multiplier: float = 1.0
    compare_threshold: float = 65.0
    compare_retries: int = 10
    compare_retry_interval_ms: int = 100
    window_timeout_ms: int = 2000
    window_poll_ms: int = 50
    wait_for_window_poll_ms: int = 100
    event_sync_timeout_ms: int = 1000

    def get_recording_mode(self) -> RecordingMode:
        return RecordingMode(self.recording_mode)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "AppSettings":
        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered = {k: v for k, v in data.items() if k in known_fields}
        return cls(**filtered)


class SettingsManager:
    """Loads and saves application settings to a JSON file."""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        self.config_path = config_path
        self.settings = AppSettings()

    def load(self) -> AppSettings:
        """Load settings from disk, falling back to defaults."""
        if os.path.exists(self.config_path):
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
                self.settings = AppSettings.from_dict(data)
            except (json.JSONDecodeError, TypeError, KeyError, AttributeError):
                logger.warning("Ignoring unreadable settings file %s", self.config_path)
                self.settings = AppSettings()
        return self.settings

    def save(self):
        """Persist current settings to disk."""
        os.makedirs(os.path.dirname(self.config_path) or ".", exist_ok=True)
        with open(self.config_path, "w") as f:
            json.dump(self.settings.to_dict(), f, indent=2)

    def update(self, **kwargs):
        """Update specific settings fields and save."""
        for key, value in kwargs.items():
            if hasattr(self.settings, key):
                setattr(self.settings, key, value)
        self.save()
