"""
appext Extension Loader

Imports the Python modules packed inside one extension archive and
instantiates the first class that implements the requested capability.

Each archive is imported in its own short-lived context: the archive is
placed on sys.path only while its modules are imported, and everything it
contributed to sys.modules is removed afterwards. Two archives can therefore
both ship a module called "util" without seeing each other's copy. The
catch is that archive code must import its sibling modules at import time,
not lazily from inside functions.

/ Carga el codigo de un archivo de extension e instancia la primera clase
/ que implementa la capacidad pedida.
"""

import importlib
import inspect
import logging
import sys
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Optional, Union

from appext.extensions.base import AppExtension
from appext.extensions.errors import LoadFailure

logger = logging.getLogger("appext.extensions.loader")


def extension_identity(obj) -> str:
    """Fully qualified class name of an extension instance or class."""
    cls = obj if isinstance(obj, type) else type(obj)
    return f"{cls.__module__}.{cls.__qualname__}"


def _module_names(archive: zipfile.ZipFile) -> list[str]:
    """Dotted module names of the .py entries, in archive order."""
    names = []
    for entry in archive.infolist():
        if entry.is_dir() or not entry.filename.endswith(".py"):
            continue
        parts = entry.filename[:-3].split("/")
        if parts[-1] == "__init__":
            parts = parts[:-1]
        if not parts or not all(part.isidentifier() for part in parts):
            continue
        names.append(".".join(parts))
    return names


def _comes_from(module, location: str) -> bool:
    origin = getattr(module, "__file__", None)
    if origin:
        return origin.startswith(location)
    # Namespace packages have no __file__, only __path__
    return any(str(p).startswith(location) for p in getattr(module, "__path__", []) or [])


@contextmanager
def _isolated_import(archive_path: Path):
    """Make archive_path importable, then forget everything it imported."""
    location = str(archive_path)
    before = set(sys.modules)
    sys.path.insert(0, location)
    importlib.invalidate_caches()
    try:
        yield location
    finally:
        try:
            sys.path.remove(location)
        except ValueError:
            pass
        sys.path_importer_cache.pop(location, None)
        for name in set(sys.modules) - before:
            module = sys.modules.get(name)
            if module is not None and _comes_from(module, location):
                del sys.modules[name]


def _find_extension_class(
    module,
    capability: type,
    is_loaded: Optional[Callable[[str], bool]],
) -> Optional[type]:
    """First concrete capability subclass defined in module."""
    for attr in list(vars(module).values()):
        if not isinstance(attr, type) or attr.__module__ != module.__name__:
            continue
        if attr is capability or not issubclass(attr, capability):
            continue
        if inspect.isabstract(attr):
            continue

        identity = extension_identity(attr)
        if is_loaded is not None and is_loaded(identity):
            logger.info(f"Skipping already loaded extension: {identity}")
            continue
        return attr
    return None


def _load(
    archive_path: Path,
    capability: type,
    is_loaded: Optional[Callable[[str], bool]],
) -> Optional[AppExtension]:
    try:
        with zipfile.ZipFile(archive_path) as archive:
            module_names = _module_names(archive)
    except (zipfile.BadZipFile, OSError) as e:
        raise LoadFailure(archive_path, f"unable to open archive: {e}") from e

    with _isolated_import(archive_path) as location:
        for module_name in module_names:
            try:
                module = importlib.import_module(module_name)
            except Exception as e:
                raise LoadFailure(
                    archive_path,
                    f"unable to import {module_name}: {type(e).__name__}: {e}",
                ) from e

            # A host module with the same name shadows the archive's copy
            if not _comes_from(module, location):
                logger.debug(f"Module {module_name} resolved outside {archive_path}, ignoring")
                continue

            cls = _find_extension_class(module, capability, is_loaded)
            if cls is None:
                continue

            identity = extension_identity(cls)
            try:
                instance = cls()
            except Exception as e:
                raise LoadFailure(
                    archive_path,
                    f"unable to instantiate {identity}: {type(e).__name__}: {e}",
                ) from e

            logger.debug(f"Found qualifying extension {identity} in {archive_path}")
            return instance

    return None


def load_extension_from_archive(
    archive_path: Union[str, Path],
    capability: type = AppExtension,
    is_loaded: Optional[Callable[[str], bool]] = None,
) -> Optional[AppExtension]:
    """
    Load one extension from an archive.

    Args:
        archive_path: Zip archive containing the extension's modules.
        capability: Class the extension must subclass.
        is_loaded: Optional predicate; classes whose identity it accepts
            are skipped and the scan continues.

    Returns:
        A new extension instance, or None if the archive has no qualifying
        class or anything goes wrong while importing or instantiating it.

    / Carga una extension desde un archivo. Nunca lanza excepciones.
    """
    archive_path = Path(archive_path).resolve()

    try:
        extension = _load(archive_path, capability, is_loaded)
    except LoadFailure as e:
        logger.warning(f"Failed to load extension from {e}")
        return None

    if extension is None:
        logger.warning(f"Archive {archive_path} contains no suitable extension")
    return extension
