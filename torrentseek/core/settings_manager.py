"""
Settings Manager
Search engine configuration: defaults, optional JSON file and environment overrides
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional
import threading

logger = logging.getLogger(__name__)


class SettingsManager:
    """Manages engine settings with optional file persistence"""

    CONFIG_FILE_ENV = "TORRENTSEEK_CONFIG_FILE"

    # environment variable -> (setting key, converter)
    ENV_OVERRIDES = {
        "TMDB_API_KEY": ("tmdb_api_key", str),
        "TORRENTSEEK_CACHE_SIZE": ("cache_size", int),
        "TORRENTSEEK_CACHE_TTL_HOURS": ("cache_ttl_seconds", lambda v: float(v) * 3600.0),
        "TORRENTSEEK_SECONDARY_LANGUAGE": ("secondary_language", str),
    }

    DEFAULT_SETTINGS = {
        # Metadata
        "tmdb_api_key": "",
        "tmdb_api_base": "https://api.themoviedb.org/3",
        "tmdb_request_timeout_seconds": 10.0,
        "secondary_language": "fr",

        # Providers
        "enabled_providers": {
            "ygg": True,
            "apibay": True,
            "torrentscsv": True,
        },
        "secondary_language_provider": "ygg",
        "provider_timeout_seconds": 30.0,
        "apibay_api_base": "https://apibay.org",
        "ygg_api_base": "https://yggapi.eu",
        "torrentscsv_api_base": "https://torrents-csv.com",
        "max_search_workers": 10,
        "user_agent": "Mozilla/5.0 (torrentseek)",

        # Cache
        "cache_size": 1000,
        "cache_ttl_seconds": 24 * 3600.0,
        "cache_cleanup_interval_seconds": 3600.0,
        "cache_cleanup_enabled": False,
    }

    def __init__(self, settings_file: Optional[str] = None, environ: Optional[Dict[str, str]] = None):
        env = os.environ if environ is None else environ
        path = settings_file or str(env.get(self.CONFIG_FILE_ENV, "") or "").strip()
        self.settings_file = Path(path).expanduser() if path else None
        self._environ = env

        self._lock = threading.RLock()
        self._settings: Dict[str, Any] = {}
        self._load()

    def _load(self):
        """Load settings from file, then apply environment overrides"""
        with self._lock:
            self._settings = json.loads(json.dumps(self.DEFAULT_SETTINGS))
            if self.settings_file is not None and self.settings_file.exists():
                try:
                    with open(self.settings_file, 'r') as f:
                        loaded = json.load(f)
                    if not isinstance(loaded, dict):
                        raise ValueError("settings file must contain a JSON object")
                    self._settings.update(loaded)
                    # Deep-merge provider flags so new providers get default states.
                    default_providers = self.DEFAULT_SETTINGS.get("enabled_providers", {})
                    loaded_providers = loaded.get("enabled_providers", {}) or {}
                    self._settings["enabled_providers"] = {**default_providers, **loaded_providers}
                except (OSError, ValueError) as e:
                    logger.error("Error loading settings from %s: %s", self.settings_file, e)
            self._apply_env_overrides()

    def _apply_env_overrides(self):
        for env_name, (key, convert) in self.ENV_OVERRIDES.items():
            raw = str(self._environ.get(env_name, "") or "").strip()
            if not raw:
                continue
            try:
                self._settings[key] = convert(raw)
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", env_name, raw)

    def save(self):
        """Save settings to the configured file"""
        if self.settings_file is None:
            return
        with self._lock:
            try:
                self.settings_file.parent.mkdir(parents=True, exist_ok=True)
                with open(self.settings_file, 'w') as f:
                    json.dump(self._settings, f, indent=2)
            except OSError as e:
                logger.error("Error saving settings: %s", e)

    def get(self, key: str, default=None) -> Any:
        """Get a setting value"""
        with self._lock:
            return self._settings.get(key, default)

    def set(self, key: str, value: Any):
        """Set a setting value"""
        with self._lock:
            self._settings[str(key)] = value

    def update(self, settings_dict: Dict[str, Any]):
        """Update multiple settings at once"""
        with self._lock:
            self._settings.update(dict(settings_dict or {}))

    def get_all(self) -> Dict[str, Any]:
        """Get all settings"""
        with self._lock:
            return self._settings.copy()

    def reset(self):
        """Reset to default settings (environment overrides still apply)"""
        with self._lock:
            self._settings = json.loads(json.dumps(self.DEFAULT_SETTINGS))
            self._apply_env_overrides()

    def enabled_provider_names(self):
        providers = self.get("enabled_providers", {}) or {}
        return [name for name, enabled in providers.items() if enabled]
