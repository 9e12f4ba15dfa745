from __future__ import annotations

import os
import sys
from pathlib import Path

APP_DIR_NAME = "voicewin"
SETTINGS_FILENAME = "settings.json"
CONFIG_DIR_ENV = "VOICEWIN_CONFIG_DIR"


def user_config_dir() -> Path:
    """Directory holding settings.json; ``$VOICEWIN_CONFIG_DIR`` overrides the platform default."""
    override = os.getenv(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()

    if sys.platform.startswith("win"):
        roaming = os.getenv("APPDATA")
        return (Path(roaming) if roaming else Path.home() / "AppData" / "Roaming") / APP_DIR_NAME

    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME

    xdg = os.getenv("XDG_CONFIG_HOME")
    return (Path(xdg) if xdg else Path.home() / ".config") / APP_DIR_NAME


def default_settings_path() -> Path:
    return user_config_dir() / SETTINGS_FILENAME
