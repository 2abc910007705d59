"""
appext Properties Store

Generic persisted key/value store used by the host and its extensions.
Named, typed entries (ConfigProperty) carry their own visibility flag so a
settings screen can hide entries that belong to disabled extensions while
their values are still loaded and saved.

Storage: a JSON file with the shape {"description": ..., "values": {...}}

/ Almacen persistente clave/valor con entradas tipadas y visibilidad propia.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger("appext.core.properties")


@dataclass
class ConfigProperty:
    """A named, persisted configuration value with an independent visibility flag."""

    fully_qualified_name: str
    value: Any = None
    label: str = ""
    enabled: bool = True


class PropertiesStore:
    """
    JSON-backed key/value store.

    Registered properties are written to and read from the same "values"
    table as the raw keys, so a property named "ui.theme" and a raw
    set("ui.theme", ...) refer to the same slot.
    """

    def __init__(
        self,
        path: Union[str, Path],
        properties: Optional[list[ConfigProperty]] = None,
        description: str = "",
    ):
        self.path = Path(path)
        self.description = description
        self._properties: list[ConfigProperty] = list(properties or [])
        self._values: dict[str, Any] = {}

    # ── Registered properties ──────────────────────────────────

    @property
    def properties(self) -> list[ConfigProperty]:
        return list(self._properties)

    def get_property(self, name: str) -> Optional[ConfigProperty]:
        """Return the property registered under name (last registration wins)."""
        for prop in reversed(self._properties):
            if prop.fully_qualified_name == name:
                return prop
        return None

    def visible_properties(self) -> list[ConfigProperty]:
        return [p for p in self._properties if p.enabled]

    # ── Raw typed accessors ────────────────────────────────────

    def get(self, key: str, default: Any = None) -> Any:
        prop = self.get_property(key)
        if prop is not None:
            return prop.value
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        prop = self.get_property(key)
        if prop is not None:
            prop.value = value
        self._values[key] = value

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in ("true", "1", "yes", "on"):
                return True
            if lowered in ("false", "0", "no", "off"):
                return False
        return default

    def set_bool(self, key: str, value: bool) -> None:
        self.set(key, bool(value))

    # ── Persistence ────────────────────────────────────────────

    def load(self) -> None:
        """
        Load values from disk into the raw table and the registered properties.

        A missing file leaves defaults untouched. A corrupted file is logged
        and ignored.

        Raises:
            OSError: if the file exists but cannot be read.
        """
        if not self.path.exists():
            logger.debug(f"Properties file {self.path} not found, using defaults")
            return

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Corrupted properties file {self.path}: {e}. Using defaults.")
            return

        values = data.get("values", {}) if isinstance(data, dict) else None
        if not isinstance(values, dict):
            logger.warning(f"Properties file {self.path} has no 'values' object. Using defaults.")
            return

        self._values = dict(values)
        for prop in self._properties:
            if prop.fully_qualified_name in self._values:
                prop.value = self._values[prop.fully_qualified_name]

    def save(self) -> None:
        """Write every raw value and registered property to disk."""
        for prop in self._properties:
            self._values[prop.fully_qualified_name] = prop.value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {"description": self.description, "values": self._values}
        self.path.write_text(
            json.dumps(data, indent=2, ensure_ascii=False, default=str),
            encoding="utf-8",
        )
