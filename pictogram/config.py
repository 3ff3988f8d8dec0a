"""Manages application configuration via an INI file."""

import configparser
import logging
from pathlib import Path
from typing import Optional

from pictogram.logging_setup import get_app_data_dir

log = logging.getLogger(__name__)

DEFAULT_CONFIG = {
    "core": {
        "default_format": "png",
        "jpeg_quality": "90",
        "interpolation": "bilinear",  # "nearest", "bilinear", "bicubic" or "lanczos"
        "max_file_size_mb": "50",
        # Largest image an edit may produce, in megapixels
        "max_output_megapixels": "100",
    },
    "thumbnails": {
        "width": "140",
        "height": "120",
        # 0 keeps every thumbnail for the whole session
        "max_cache_mb": "0",
        "workers": "4",
    },
    "codec": {
        "webp_fallback": "png",  # Options: "png", "error"
        "use_turbojpeg": "True",
    },
}

class AppConfig:
    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or get_app_data_dir() / "pictogram.ini"
        self.config = configparser.ConfigParser()
        self.load()

    def load(self):
        """Loads the config, creating it with defaults if it doesn't exist."""
        if not self.config_path.exists():
            log.info(f"Creating default config at {self.config_path}")
            self.config.read_dict(DEFAULT_CONFIG)
            self.save()
        else:
            log.info(f"Loading config from {self.config_path}")
            try:
                self.config.read(self.config_path)
            except configparser.Error as e:
                log.error(f"Config file {self.config_path} is unreadable, using defaults: {e}")
                self.config = configparser.ConfigParser()
                self.config.read_dict(DEFAULT_CONFIG)
                return
            # Ensure all sections and keys exist
            missing = False
            for section, keys in DEFAULT_CONFIG.items():
                if not self.config.has_section(section):
                    self.config.add_section(section)
                for key, value in keys.items():
                    if not self.config.has_option(section, key):
                        self.config.set(section, key, value)
                        missing = True
            if missing:
                self.save() # Save to add any missing keys

    def save(self):
        """Saves the current configuration to the INI file."""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with self.config_path.open("w") as f:
                self.config.write(f)
            log.info(f"Saved config to {self.config_path}")
        except OSError as e:
            log.error(f"Failed to save config to {self.config_path}: {e}")

    def get(self, section, key, fallback=None):
        return self.config.get(section, key, fallback=fallback)

    def getint(self, section, key, fallback=None):
        return self.config.getint(section, key, fallback=fallback)

    def getfloat(self, section, key, fallback=None):
        return self.config.getfloat(section, key, fallback=fallback)

    def getboolean(self, section, key, fallback=None):
        return self.config.getboolean(section, key, fallback=fallback)

    def set(self, section, key, value):
        if not self.config.has_section(section):
            self.config.add_section(section)
        self.config.set(section, key, str(value))

# Global config instance
config = AppConfig()
