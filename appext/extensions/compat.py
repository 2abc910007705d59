"""
appext Compatibility Filter

Decides whether an extension's manifest targets this application.
Version comparison is numeric only ("1.2" works, "1.2.3" does not): both
sides are parsed as floats and anything unparsable is rejected.

/ Filtro de compatibilidad: nombre de app y version minima.
"""

import logging
from typing import Optional

from appext.extensions.errors import IncompatibleTarget
from appext.extensions.manifest import ManifestInfo

logger = logging.getLogger("appext.extensions.compat")

# Version assumed for manifests that don't declare targetAppVersion
MISSING_VERSION = -1.0


def parse_version(text: Optional[str]) -> float:
    """Parse a version string as a float. None means MISSING_VERSION."""
    if text is None:
        return MISSING_VERSION
    return float(text)


def check_compatibility(
    manifest: ManifestInfo,
    app_name: Optional[str] = None,
    min_version: Optional[str] = None,
) -> None:
    """
    Raise IncompatibleTarget if the manifest does not target this app.

    Args:
        manifest: Parsed extension manifest.
        app_name: Required targetAppName (exact match). None skips the check.
        min_version: Minimum targetAppVersion. None skips the check.
    """
    if app_name is not None and manifest.target_app_name != app_name:
        raise IncompatibleTarget(
            f'target app name "{manifest.target_app_name}" does not match "{app_name}"'
        )

    if min_version is None:
        return

    try:
        required = float(min_version)
        declared = parse_version(manifest.target_app_version)
    except (TypeError, ValueError) as e:
        raise IncompatibleTarget(
            f'unable to parse version information: app version "{min_version}", '
            f'extension targets version "{manifest.target_app_version}"'
        ) from e

    if declared < required:
        raise IncompatibleTarget(
            f"extension targets version {manifest.target_app_version}, "
            f"below the required version of {min_version}"
        )


def is_eligible(
    manifest: ManifestInfo,
    app_name: Optional[str] = None,
    min_version: Optional[str] = None,
    source: Optional[object] = None,
) -> bool:
    """
    Return True if the manifest passes check_compatibility(). Never raises.

    / Devuelve True si la extension es compatible. Nunca lanza excepciones.
    """
    try:
        check_compatibility(manifest, app_name, min_version)
    except IncompatibleTarget as e:
        logger.warning(f"Skipping {source or manifest.name}: {e}")
        return False
    return True
