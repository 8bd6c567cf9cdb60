"""
Earshot Configuration Loader
Loads values from settings.json via the settings manager.
"""
import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from settings import settings

# ==========================================
# Path Configuration
# ==========================================
if getattr(sys, 'frozen', False):
    ROOT_DIR = Path(sys.executable).parent
else:
    ROOT_DIR = Path(__file__).parent

# ==========================================
# Version
# ==========================================
VERSION = "0.3.0"

env_file = ROOT_DIR / '.env'
if env_file.exists():
    load_dotenv(env_file)


# Helper to prefer Env Var > Settings JSON > Default
def conf(key, default=None):
    # 1. Check Env Var (Highest Priority - good for docker/dev)
    env_val = os.getenv(key.upper().replace('.', '_'))
    if env_val is not None:
        return env_val

    # 2. Check Settings JSON
    json_val = settings.get(key)
    if json_val is not None:
        return json_val

    # 3. Default
    return default


def _as_bool(value) -> bool:
    if isinstance(value, str):
        return value.lower() in ('true', '1', 'yes', 'on')
    return bool(value)


def _optional_int(value) -> Optional[int]:
    if value in (None, ""):
        return None
    return int(value)


# ==========================================
# EXPORTED CONFIG DICTS
# ==========================================

USER_AGENT = os.getenv("EARSHOT_USER_AGENT", f"Earshot/{VERSION} (ambient song recognition)")

DEBUG = {
    "log_file": conf("debug.log_file", "earshot.log"),
    "log_level": conf("debug.log_level", "INFO"),
    "log_to_console": _as_bool(conf("debug.log_to_console", True)),
    "log_detailed": _as_bool(conf("debug.log_detailed", False)),
    "log_providers": _as_bool(conf("debug.log_providers", True)),
}

# Level-triggered capture loop
CAPTURE = {
    "threshold_db": float(conf("capture.threshold_db", -50.0)),
    "record_duration": float(conf("capture.record_duration", 10.0)),
    "cooldown": float(conf("capture.cooldown", 5.0)),
    "tick_interval": float(conf("capture.tick_interval", 1 / 60)),
    "sample_rate": int(conf("capture.sample_rate", 44100)),
    "channels": int(conf("capture.channels", 1)),
    "device_id": _optional_int(conf("capture.device_id")),
    "device_name": conf("capture.device_name", ""),
    "fft_size": int(conf("capture.fft_size", 2048)),
}

# Note: API tokens are NOT in settings.json - they are only read from environment
# variables (should be in .env file)
RECOGNITION = {
    "api_url": conf("recognition.api_url", "https://api.audd.io/"),
    "timeout": int(conf("recognition.timeout", 30)),
    "api_token": os.getenv("AUDD_API_KEY", ""),
}

PROVIDERS = {
    "spotify": {
        "enabled": _as_bool(conf("providers.spotify.enabled", True)),
        "timeout": int(conf("providers.spotify.timeout", 5)),
        "client_id": os.getenv("SPOTIFY_CLIENT_ID", ""),
        "client_secret": os.getenv("SPOTIFY_CLIENT_SECRET", ""),
    },
    "musicbrainz": {
        "enabled": _as_bool(conf("providers.musicbrainz.enabled", True)),
        "timeout": int(conf("providers.musicbrainz.timeout", 10)),
        "base_url": "https://musicbrainz.org/ws/2",
    },
    "coverartarchive": {
        "enabled": _as_bool(conf("providers.coverartarchive.enabled", True)),
        "timeout": int(conf("providers.coverartarchive.timeout", 10)),
        "base_url": "https://coverartarchive.org",
    },
    "lastfm": {
        "enabled": _as_bool(conf("providers.lastfm.enabled", True)),
        "timeout": int(conf("providers.lastfm.timeout", 5)),
        "base_url": "https://ws.audioscrobbler.com/2.0/",
        "api_key": os.getenv("LASTFM_API_KEY", ""),
    },
    "wikipedia": {
        "enabled": _as_bool(conf("providers.wikipedia.enabled", True)),
        "timeout": int(conf("providers.wikipedia.timeout", 5)),
        "base_url": "https://en.wikipedia.org/api/rest_v1/page/summary",
    },
    "genius": {
        "enabled": _as_bool(conf("providers.genius.enabled", True)),
        "timeout": int(conf("providers.genius.timeout", 5)),
        "base_url": "https://api.genius.com",
        "access_token": os.getenv("GENIUS_ACCESS_TOKEN", ""),
    },
    "gemini": {
        "enabled": _as_bool(conf("providers.gemini.enabled", True)),
        "timeout": int(conf("providers.gemini.timeout", 30)),
        "base_url": "https://generativelanguage.googleapis.com/v1beta/models",
        "api_key": os.getenv("GEMINI_API_KEY", ""),
    },
}

ENRICHMENT = {
    "provider_timeout": float(conf("enrichment.provider_timeout", 15.0)),
    "narrative_enabled": _as_bool(conf("enrichment.narrative_enabled", True)),
    "narrative_model": conf("enrichment.narrative_model", "gemini-2.0-flash"),
}


# Helper functions
def get_provider_config(name: str) -> dict:
    return PROVIDERS.get(name, {"enabled": False, "timeout": 10})


def is_provider_enabled(name: str) -> bool:
    return PROVIDERS.get(name, {}).get("enabled", False)
