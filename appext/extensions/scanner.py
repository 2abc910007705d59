"""
appext Archive Scanner

Finds extension archives (zip files) under a directory and extracts the
manifest from each one. A broken or manifest-less archive is logged and
skipped; it never aborts the scan.

/ Busca archivos de extension y extrae su manifiesto.
"""

import logging
import zipfile
from pathlib import Path
from typing import Iterable, Optional, Union

from appext.extensions.errors import MalformedManifest
from appext.extensions.manifest import MANIFEST_NAME, ManifestInfo, parse_manifest

logger = logging.getLogger("appext.extensions.scanner")

ARCHIVE_SUFFIXES = (".zip", ".pyz")


def find_archives(
    root: Union[str, Path],
    suffixes: Iterable[str] = ARCHIVE_SUFFIXES,
) -> list[Path]:
    """
    Recursively list archive files under root, sorted by path.

    Raises:
        FileNotFoundError: if root does not exist.
        NotADirectoryError: if root is not a directory.
    """
    root = Path(root)
    if not root.exists():
        raise FileNotFoundError(f"Extensions directory does not exist: {root}")
    if not root.is_dir():
        raise NotADirectoryError(f"Extensions path is not a directory: {root}")

    wanted = {s.lower() for s in suffixes}
    return sorted(
        p for p in root.rglob("*")
        if p.is_file() and p.suffix.lower() in wanted
    )


def _find_manifest_entry(archive: zipfile.ZipFile) -> Optional[zipfile.ZipInfo]:
    """First manifest entry in archive order, or None."""
    for entry in archive.infolist():
        if entry.is_dir():
            continue
        if entry.filename.endswith(MANIFEST_NAME):
            return entry
    return None


def extract_manifest(archive_path: Union[str, Path]) -> Optional[ManifestInfo]:
    """
    Read the manifest from one archive.

    Returns:
        The parsed ManifestInfo, or None if the archive is unreadable, has no
        manifest entry, or the manifest is malformed.
    """
    archive_path = Path(archive_path)
    logger.debug(f"Extracting manifest from {archive_path}")

    try:
        with zipfile.ZipFile(archive_path) as archive:
            entry = _find_manifest_entry(archive)
            if entry is None:
                logger.warning(f"Archive {archive_path} does not contain {MANIFEST_NAME}, skipping")
                return None
            text = archive.read(entry).decode("utf-8")
    except (zipfile.BadZipFile, OSError, UnicodeDecodeError) as e:
        logger.error(f"Unable to read archive {archive_path}: {e}")
        return None

    try:
        return parse_manifest(text)
    except MalformedManifest as e:
        logger.warning(f"Archive {archive_path} contains an invalid manifest, skipping: {e}")
        return None


def scan_directory(
    root: Union[str, Path],
    suffixes: Iterable[str] = ARCHIVE_SUFFIXES,
) -> list[tuple[Path, ManifestInfo]]:
    """
    Return (archive, manifest) pairs for every readable archive under root,
    in path order.

    / Devuelve pares (archivo, manifiesto) en orden de ruta.
    """
    candidates = []
    for archive_path in find_archives(root, suffixes):
        manifest = extract_manifest(archive_path)
        if manifest is not None:
            candidates.append((archive_path, manifest))
    return candidates
