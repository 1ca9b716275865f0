import os
import sys
import tomllib
from dataclasses import dataclass, field, is_dataclass
from pathlib import Path
from typing import Any, ClassVar, TypeVar

from loguru import logger

# --- Constants ---
APP_NAME = "ftxprices"
# Use a platform-agnostic user config directory
if sys.platform == "win32":
    CONFIG_DIR = Path.home() / "AppData" / "Roaming" / APP_NAME
else:
    CONFIG_DIR = Path.home() / ".config" / APP_NAME

CONFIG_FILE = CONFIG_DIR / "config.toml"

# Overrides CONFIG_FILE when set.
CONFIG_ENV_VAR = "FTXPRICES_CONFIG"

DEFAULT_CONFIG_TEXT = """\
# ftxprices configuration file
# Uncomment and edit the settings you want to override.

# [general]
# log_level_console = "INFO"
# log_level_file = "DEBUG"
# log_directory = ""

# [api]
# base_url = "https://ftx.com/api"
# timeout_seconds = 20.0
# request_interval_seconds = 0.25

# [download]
# default_resolution = 15
# output_directory = "."
# progress_every_pages = 10
"""

# --- Dataclass Models for Settings ---
T = TypeVar("T")


@dataclass
class GeneralSettings:
    """General application settings."""

    log_level_console: str = "INFO"
    log_level_file: str = "DEBUG"
    # An empty string disables file logging.
    log_directory: str = ""


@dataclass
class APISettings:
    """Settings for the exchange REST API."""

    base_url: str = "https://ftx.com/api"
    timeout_seconds: float = 20.0
    request_interval_seconds: float = 0.25


@dataclass
class DownloadSettings:
    """Settings for historical candle downloads."""

    default_resolution: int = 15
    output_directory: str = "."
    progress_every_pages: int = 10


@dataclass
class Settings:
    """Root container for all application settings."""

    general: GeneralSettings = field(default_factory=GeneralSettings)
    api: APISettings = field(default_factory=APISettings)
    download: DownloadSettings = field(default_factory=DownloadSettings)

    _instance: ClassVar["Settings | None"] = None

    @classmethod
    def get_instance(cls, path: Path | None = None) -> "Settings":
        """Returns the singleton instance of the Settings object.

        The first call loads it from `path`, or from the default location.
        """
        if cls._instance is None:
            cls._instance = load_config(path or default_config_path())
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Forgets the loaded settings, so the next access reloads them."""
        cls._instance = None


def default_config_path() -> Path:
    """The configuration file location, honouring FTXPRICES_CONFIG."""
    override = os.environ.get(CONFIG_ENV_VAR)
    return Path(override).expanduser() if override else CONFIG_FILE


def _update_dataclass(dc_instance: T, data: dict[str, Any]) -> T:
    """Recursively updates a dataclass instance from a dictionary."""
    for f in field_names(dc_instance):
        if f in data:
            field_value = getattr(dc_instance, f)
            if is_dataclass(field_value):
                if isinstance(data[f], dict):
                    _update_dataclass(field_value, data[f])
                else:
                    logger.warning(f"Ignoring config key '{f}': expected a table.")
            else:
                setattr(dc_instance, f, data[f])
    return dc_instance


def field_names(dc_instance: Any) -> list[str]:
    """Helper to get field names from a dataclass instance."""
    return [f.name for f in dc_instance.__dataclass_fields__.values()]


def load_config(path: Path = CONFIG_FILE) -> Settings:
    """Loads settings from a TOML file, merging them with defaults.

    If the config file does not exist, a commented template is created and
    the defaults are returned.

    Args:
        path: The path to the configuration file.

    Returns:
        A populated Settings object.
    """
    settings_obj = Settings()
    logger.debug(f"Loading configuration from '{path}'...")

    if not path.exists():
        logger.info(f"Configuration file not found. Creating default at '{path}'.")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(DEFAULT_CONFIG_TEXT, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Failed to create default config file: {e}")
        return settings_obj

    try:
        with path.open("rb") as f:
            user_config = tomllib.load(f)
        _update_dataclass(settings_obj, user_config)
        logger.debug("Successfully loaded user configuration.")
    except tomllib.TOMLDecodeError as e:
        logger.error(f"Error decoding TOML from '{path}': {e}")
        logger.warning("Using default settings due to configuration error.")
    except OSError as e:
        logger.error(f"Could not read configuration file '{path}': {e}")
        logger.warning("Using default settings due to configuration error.")

    return settings_obj
