"""
appext Configuration Manager

Handles loading and saving the host configuration: which application
extensions must target, where archives live, and where extension settings
are persisted.
"""

import json
from dataclasses import dataclass, field, asdict
from typing import Optional
from pathlib import Path


# Default config location: ~/.appext/config.json
CONFIG_DIR = Path.home() / ".appext"
CONFIG_FILE = CONFIG_DIR / "config.json"
LOG_DIR = CONFIG_DIR / "logs"


@dataclass
class ExtensionsConfig:
    """Where extensions come from and where their state is kept."""

    # Searched recursively for extension archives
    directory: str = str(CONFIG_DIR / "extensions")

    # Persisted enabled flags and extension-owned properties
    settings_file: str = str(CONFIG_DIR / "settings.json")

    archive_suffixes: list[str] = field(default_factory=lambda: [".zip", ".pyz"])

    # Call on_activate() on enabled extensions once loading finishes
    activate_on_start: bool = True


@dataclass
class HostConfig:
    """Root configuration for an appext host."""

    extensions: ExtensionsConfig = field(default_factory=ExtensionsConfig)

    # Extensions must declare this targetAppName (None accepts any)
    app_name: Optional[str] = "appext"

    # Minimum targetAppVersion, compared numerically (None accepts any)
    min_version: Optional[str] = None

    log_level: str = "INFO"

    def save(self, path: Optional[Path] = None):
        """Save configuration to JSON file."""
        config_path = path or CONFIG_FILE
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "HostConfig":
        """Load configuration from JSON file. Creates default if not found."""
        config_path = path or CONFIG_FILE

        if not config_path.exists():
            config = cls()
            config.save(config_path)
            return config

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)

            extensions = ExtensionsConfig(**data.get("extensions", {}))

            return cls(
                extensions=extensions,
                app_name=data.get("app_name", "appext"),
                min_version=data.get("min_version"),
                log_level=data.get("log_level", "INFO"),
            )
        except (json.JSONDecodeError, TypeError, KeyError, AttributeError):
            # Corrupted config, use defaults
            config = cls()
            config.save(config_path)
            return config


def ensure_dirs():
    """Create necessary directories."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    LOG_DIR.mkdir(parents=True, exist_ok=True)
