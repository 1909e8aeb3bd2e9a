import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import httpctl.settings as default_settings

log = logging.getLogger(__name__)


def coerce_value(original_value: Any, value: Any) -> Any:
    """
    Converts a new value to the type of the value it replaces.

    :param original_value: The current (default) value of the setting.
    :param value: The incoming value, usually a string from the console or JSON.
    :return: The converted value.
    :raises ValueError: If the value cannot be converted.
    :raises TypeError: If the value cannot be converted.
    """
    if isinstance(original_value, bool):
        return str(value).lower() in ('true', '1', 't', 'yes', 'y')
    if isinstance(original_value, Path):
        return Path(value)
    if original_value is not None:
        return type(original_value)(value)
    return value


class MergedSettings:
    """
    Merges the defaults from `settings.py` with runtime overrides.

    Precedence, lowest first:
    1. Base values from `settings.py`.
    2. Environment / `.env` values (read by `python-dotenv` in settings.py).
    3. `overrides.json`, restricted to keys listed in `MODIFIABLE_SETTINGS`.
    """

    def __init__(self, overrides_path: Optional[Path] = None) -> None:
        self._load_defaults()
        if overrides_path is not None:
            self.OVERRIDES_JSON_PATH = Path(overrides_path)
        self._load_overrides()

    def _load_defaults(self) -> None:
        """Loads all uppercase attributes from the settings module."""
        for key in dir(default_settings):
            if key.isupper():
                setattr(self, key, getattr(default_settings, key))

    def _load_overrides(self) -> None:
        """Applies whitelisted settings from the overrides file, if present."""
        if not self.OVERRIDES_JSON_PATH.exists():
            return

        try:
            with self.OVERRIDES_JSON_PATH.open('r') as f:
                overrides = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            log.error(f"Failed to load or parse overrides file '{self.OVERRIDES_JSON_PATH}': {e}")
            return

        if not isinstance(overrides, dict):
            log.error(f"Overrides file '{self.OVERRIDES_JSON_PATH}' does not contain a JSON object. Ignoring.")
            return

        log.info(f"Loading runtime configuration overrides from {self.OVERRIDES_JSON_PATH}")
        for key, value in overrides.items():
            if not hasattr(self, key):
                log.warning(f"Override setting '{key}' not found in default settings. Ignoring.")
                continue
            if key not in self.MODIFIABLE_SETTINGS:
                log.warning(f"Attempted to override non-modifiable setting '{key}'. Ignoring.")
                continue
            try:
                setattr(self, key, coerce_value(getattr(self, key), value))
            except (ValueError, TypeError) as e:
                log.warning(f"Override for '{key}' has an invalid value {value!r}: {e}. Ignoring.")
                continue
            log.debug(f"Overridden setting: {key} = {value}")

    def get(self, key: str, default: Any = None) -> Any:
        """Provides dictionary-like access to settings with a default value."""
        return getattr(self, key, default)

    def as_dict(self) -> Dict[str, Any]:
        """Returns every uppercase setting currently in effect."""
        return {key: value for key, value in vars(self).items() if key.isupper()}

    def update_setting(self, key: str, value: Any) -> Tuple[bool, str]:
        """
        Changes a modifiable setting and persists it to the overrides file.

        :param key: The setting name (case-sensitive, uppercase).
        :param value: The new value; converted to the type of the current one.
        :return: A (success, message) tuple suitable for showing to the operator.
        """
        if key not in self.MODIFIABLE_SETTINGS:
            message = f"Setting '{key}' is not modifiable."
            log.warning(f"Rejected config update: {message}")
            return False, message

        try:
            new_value = coerce_value(getattr(self, key, None), value)
        except (ValueError, TypeError) as e:
            message = f"Could not convert value '{value}' for key '{key}'. Error: {e}"
            log.error(f"Config update failed: {message}")
            return False, message

        setattr(self, key, new_value)
        self.save_overrides({k: getattr(self, k) for k in self.MODIFIABLE_SETTINGS if hasattr(self, k)})
        message = f"Setting '{key}' updated to '{new_value}'. Restart the server to apply it."
        log.info(message)
        return True, message

    def save_overrides(self, overrides_to_save: Dict[str, Any]) -> None:
        """
        Writes the modifiable subset of the given settings to the overrides file.

        :param overrides_to_save: A dictionary of settings to persist.
        """
        filtered_overrides = {
            key: str(value) if isinstance(value, Path) else value
            for key, value in overrides_to_save.items()
            if key in self.MODIFIABLE_SETTINGS
        }

        if not filtered_overrides:
            log.warning("No modifiable settings provided to save.")
            return

        try:
            self.OVERRIDES_JSON_PATH.parent.mkdir(parents=True, exist_ok=True)
            with self.OVERRIDES_JSON_PATH.open('w') as f:
                json.dump(filtered_overrides, f, indent=4)
            log.info(f"Configuration overrides saved to {self.OVERRIDES_JSON_PATH}")
        except IOError as e:
            log.error(f"Failed to write to overrides file '{self.OVERRIDES_JSON_PATH}': {e}")

# Create a singleton instance to be imported by other modules
effective_settings = MergedSettings()
