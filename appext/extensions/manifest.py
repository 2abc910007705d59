"""
appext Extension Manifest

Immutable metadata record describing one extension package. Every archive
carries exactly one JSON manifest (extension_info.json) with this shape:

    {
        "name": "...", "author": "...", "version": "...",
        "targetAppName": "...", "targetAppVersion": "...",
        "shortDescription": "...", "longDescription": "...",
        "releaseNotes": "...",
        "customFields": {"key": "value"}
    }

Only name and targetAppName are required.

/ Metadatos inmutables de una extension, leidos del manifiesto JSON.
"""

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from appext.extensions.errors import MalformedManifest

MANIFEST_NAME = "extension_info.json"

# Wire key -> attribute name
_FIELD_MAP = {
    "name": "name",
    "author": "author",
    "version": "version",
    "targetAppName": "target_app_name",
    "targetAppVersion": "target_app_version",
    "shortDescription": "short_description",
    "longDescription": "long_description",
    "releaseNotes": "release_notes",
}

_REQUIRED_FIELDS = ("name", "targetAppName")

# Also accepted as JSON numbers
_VERSION_FIELDS = ("version", "targetAppVersion")


@dataclass(frozen=True)
class ManifestInfo:
    """Parsed manifest of one extension. Never partially populated."""

    name: str
    target_app_name: str
    author: str = ""
    version: str = ""
    target_app_version: Optional[str] = None
    short_description: str = ""
    long_description: str = ""
    release_notes: str = ""
    custom_fields: Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        for attr in ("name", "target_app_name"):
            value = getattr(self, attr)
            if not isinstance(value, str) or not value.strip():
                raise MalformedManifest(f"Manifest field '{attr}' must be a non-empty string")
        # Freeze a private copy so callers can't mutate it behind our back
        object.__setattr__(self, "custom_fields", MappingProxyType(dict(self.custom_fields)))

    def get_custom_field(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.custom_fields.get(name, default)

    def to_dict(self) -> dict:
        """Return the camelCase wire form of this manifest."""
        data: dict[str, Any] = {key: getattr(self, attr) for key, attr in _FIELD_MAP.items()}
        data["customFields"] = dict(self.custom_fields)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Any) -> "ManifestInfo":
        """
        Build a ManifestInfo from a decoded manifest payload.

        Raises:
            MalformedManifest: if required structure is absent or mistyped.
        """
        if not isinstance(data, dict):
            raise MalformedManifest(
                f"Manifest must be a JSON object, got {type(data).__name__}"
            )

        for key in _REQUIRED_FIELDS:
            if data.get(key) is None:
                raise MalformedManifest(f"Manifest missing required field: {key}")

        kwargs: dict[str, Any] = {}
        for key, attr in _FIELD_MAP.items():
            value = data.get(key)
            if value is None:
                continue
            if key in _VERSION_FIELDS and isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            if not isinstance(value, str):
                raise MalformedManifest(
                    f"Manifest field '{key}' must be a string, got {type(value).__name__}"
                )
            kwargs[attr] = value

        kwargs["custom_fields"] = _parse_custom_fields(data.get("customFields"))
        return cls(**kwargs)


def _parse_custom_fields(raw: Any) -> dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise MalformedManifest("Manifest field 'customFields' must be an object")

    fields: dict[str, str] = {}
    for key, value in raw.items():
        if isinstance(value, (dict, list)):
            raise MalformedManifest(f"Custom field '{key}' must be a scalar value")
        if value is None:
            fields[key] = ""
        elif isinstance(value, bool):
            fields[key] = "true" if value else "false"
        else:
            fields[key] = str(value)
    return fields


def parse_manifest(text: str) -> ManifestInfo:
    """
    Parse manifest JSON text.

    Raises:
        MalformedManifest: on invalid JSON or missing required fields.

    / Parsea el texto JSON de un manifiesto.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedManifest(f"Invalid manifest JSON: {e}") from e
    return ManifestInfo.from_dict(data)
