"""
Earshot Settings Manager
Handles persistent configuration stored in settings.json
"""

import json
import os
import shutil
import sys
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from logging_config import get_logger

logger = get_logger(__name__)

if getattr(sys, 'frozen', False):
    ROOT_DIR = Path(sys.executable).parent
else:
    ROOT_DIR = Path(__file__).parent

# Allow overriding the settings file location via environment variable
SETTINGS_FILE = Path(os.getenv("EARSHOT_SETTINGS_FILE", str(ROOT_DIR / "settings.json")))


@dataclass
class Setting:
    """Represents a single configurable setting"""
    name: str
    type: type
    default: Any
    category: Optional[str] = None
    description: Optional[str] = None
    min_val: Optional[float] = None
    max_val: Optional[float] = None

    def validate_and_convert(self, value: Any) -> Any:
        if value is None:
            return self.default
        try:
            if self.type == bool and isinstance(value, str):
                return value.lower() in ('true', '1', 'yes', 'on')
            converted = self.type(value)
        except (ValueError, TypeError):
            return self.default
        if self.min_val is not None and converted < self.min_val:
            return self.min_val
        if self.max_val is not None and converted > self.max_val:
            return self.max_val
        return converted


class SettingsManager:
    def __init__(self, settings_file: Path = SETTINGS_FILE):
        self._settings_file = Path(settings_file)
        self._settings: Dict[str, Any] = {}

        self._definitions = {
            # Debug
            "debug.log_file": Setting("Log File", str, "earshot.log", "Debug", "Log file name"),
            "debug.log_level": Setting("Log Level", str, "INFO", "Debug", "Console logging verbosity"),
            "debug.log_to_console": Setting("Log to Console", bool, True, "Debug", "Print logs to terminal"),
            "debug.log_detailed": Setting("Detailed Logging", bool, False, "Debug", "DEBUG level in the log file"),
            "debug.log_providers": Setting("Log Providers", bool, True, "Debug", "Log provider requests"),

            # Capture
            "capture.threshold_db": Setting("Trigger Threshold", float, -50.0, "Capture", "Loudness that starts a recording (dB)", min_val=-100.0, max_val=0.0),
            "capture.record_duration": Setting("Record Duration", float, 10.0, "Capture", "Length of each recording (s)", min_val=1.0, max_val=60.0),
            "capture.cooldown": Setting("Cooldown", float, 5.0, "Capture", "Pause before monitoring resumes (s)", min_val=0.0, max_val=300.0),
            "capture.tick_interval": Setting("Tick Interval", float, 1 / 60, "Capture", "Level polling period (s)", min_val=0.001, max_val=1.0),
            "capture.sample_rate": Setting("Sample Rate", int, 44100, "Capture", "Microphone sample rate (Hz)"),
            "capture.channels": Setting("Channels", int, 1, "Capture", "Microphone channels", min_val=1, max_val=2),
            "capture.device_id": Setting("Device ID", int, None, "Capture", "Input device index (blank = default)"),
            "capture.device_name": Setting("Device Name", str, "", "Capture", "Input device name (partial match)"),
            "capture.fft_size": Setting("FFT Size", int, 2048, "Capture", "Analyser window size"),

            # Recognition
            "recognition.api_url": Setting("AudD URL", str, "https://api.audd.io/", "Recognition", "Recognition endpoint"),
            "recognition.timeout": Setting("Timeout", int, 30, "Recognition", "Request timeout (s)", min_val=1, max_val=120),

            # Providers
            "providers.spotify.enabled": Setting("Spotify", bool, True, "Providers", "Catalog metadata from Spotify"),
            "providers.spotify.timeout": Setting("Spotify Timeout", int, 5, "Providers", "Request timeout (s)"),
            "providers.musicbrainz.enabled": Setting("MusicBrainz", bool, True, "Providers", "Community metadata from MusicBrainz"),
            "providers.musicbrainz.timeout": Setting("MusicBrainz Timeout", int, 10, "Providers", "Request timeout (s)"),
            "providers.coverartarchive.enabled": Setting("Cover Art Archive", bool, True, "Providers", "Artwork lookup by release id"),
            "providers.coverartarchive.timeout": Setting("Cover Art Archive Timeout", int, 10, "Providers", "Request timeout (s)"),
            "providers.lastfm.enabled": Setting("Last.fm", bool, True, "Providers", "Tags and album image from Last.fm"),
            "providers.lastfm.timeout": Setting("Last.fm Timeout", int, 5, "Providers", "Request timeout (s)"),
            "providers.wikipedia.enabled": Setting("Wikipedia", bool, True, "Providers", "Encyclopedic summary"),
            "providers.wikipedia.timeout": Setting("Wikipedia Timeout", int, 5, "Providers", "Request timeout (s)"),
            "providers.genius.enabled": Setting("Genius", bool, True, "Providers", "Lyrics page link"),
            "providers.genius.timeout": Setting("Genius Timeout", int, 5, "Providers", "Request timeout (s)"),
            "providers.gemini.enabled": Setting("Gemini", bool, True, "Providers", "Generated liner notes and lineage"),
            "providers.gemini.timeout": Setting("Gemini Timeout", int, 30, "Providers", "Request timeout (s)"),

            # Enrichment
            "enrichment.provider_timeout": Setting("Provider Timeout", float, 15.0, "Enrichment", "Upper bound per provider call (s)", min_val=1.0, max_val=120.0),
            "enrichment.narrative_enabled": Setting("Narrative", bool, True, "Enrichment", "Generate liner notes and lineage"),
            "enrichment.narrative_model": Setting("Narrative Model", str, "gemini-2.0-flash", "Enrichment", "Generative model name"),
        }

        self.load_settings()

    def load_settings(self) -> None:
        """Load settings from JSON, fall back to defaults"""
        self._settings = {key: definition.default for key, definition in self._definitions.items()}

        if not self._settings_file.exists():
            logger.debug(f"No settings file at {self._settings_file}, using defaults")
            return

        try:
            with open(self._settings_file, 'r', encoding='utf-8') as f:
                saved = json.load(f)
            for key, val in saved.items():
                if key in self._definitions:
                    self._settings[key] = self._definitions[key].validate_and_convert(val)
                else:
                    # Unknown keys are kept so they survive a save
                    self._settings[key] = val
        except (OSError, ValueError, AttributeError) as e:
            logger.error(f"Failed to load {self._settings_file.name}: {e} - using defaults")
            backup_path = self._settings_file.with_suffix('.json.corrupted')
            try:
                shutil.copy2(self._settings_file, backup_path)
                logger.info(f"Backed up corrupted settings to {backup_path}")
            except OSError as backup_error:
                logger.debug(f"Could not back up corrupted settings: {backup_error}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a setting value.
        Priority:
        1. Loaded value (from JSON or schema default)
        2. Provided 'default' argument (if key unknown)
        """
        if key in self._settings:
            return self._settings[key]
        return default

    def set(self, key: str, value: Any) -> bool:
        """Set a known setting in memory. Returns False for unknown keys."""
        if key not in self._definitions:
            return False
        self._settings[key] = self._definitions[key].validate_and_convert(value)
        return True

    def save(self) -> None:
        """Save current settings to JSON file (atomic replace)"""
        temp_path = self._settings_file.parent / f"settings_{uuid.uuid4().hex}.json.tmp"
        try:
            with open(temp_path, 'w', encoding='utf-8') as f:
                json.dump(self._settings, f, indent=4, sort_keys=True)
            os.replace(temp_path, self._settings_file)
        except OSError as e:
            logger.error(f"Failed to save settings: {e}")
            if temp_path.exists():
                temp_path.unlink()

    def reset_to_defaults(self) -> None:
        if self._settings_file.exists():
            self._settings_file.unlink()
        self.load_settings()


settings = SettingsManager()
