"""
appext Extension System

Discovers extensions packaged as zip archives, loads the class that
implements the host's capability interface, tracks which extensions are
enabled, and keeps that state in step with the persisted application
settings.

/ Sistema de extensiones: descubrimiento, carga, estado y sincronizacion
/ con la configuracion persistida.
"""

from .base import AppExtension
from .compat import check_compatibility, is_eligible
from .errors import (
    ExtensionError,
    HookFailure,
    IncompatibleTarget,
    LoadFailure,
    MalformedManifest,
)
from .loader import extension_identity, load_extension_from_archive
from .manifest import MANIFEST_NAME, ManifestInfo, parse_manifest
from .registry import ExtensionHandle, ExtensionRegistry
from .scanner import extract_manifest, find_archives, scan_directory
from .settings import ExtensionSettings, enabled_key

__all__ = [
    "AppExtension",
    "ManifestInfo",
    "MANIFEST_NAME",
    "parse_manifest",
    "ExtensionHandle",
    "ExtensionRegistry",
    "ExtensionSettings",
    "enabled_key",
    "extension_identity",
    "load_extension_from_archive",
    "check_compatibility",
    "is_eligible",
    "extract_manifest",
    "find_archives",
    "scan_directory",
    "ExtensionError",
    "MalformedManifest",
    "IncompatibleTarget",
    "LoadFailure",
    "HookFailure",
]
