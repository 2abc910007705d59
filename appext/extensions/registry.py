"""
appext Extension Registry

The authoritative in-memory table of loaded extensions: which ones exist,
where they came from, and whether they are enabled. Enabling or disabling
an extension fires its activation hooks; a misbehaving hook is logged and
never breaks the host.

Lifecycle per identity:
    absent -> loaded (enabled | disabled), toggled by set_enabled().
    There is no runtime unload.

/ Registro en memoria de extensiones cargadas y su estado habilitado.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from appext.core.properties import ConfigProperty
from appext.extensions.base import AppExtension
from appext.extensions.compat import is_eligible
from appext.extensions.errors import HookFailure
from appext.extensions.loader import extension_identity, load_extension_from_archive
from appext.extensions.manifest import ManifestInfo
from appext.extensions.scanner import ARCHIVE_SUFFIXES, scan_directory

logger = logging.getLogger("appext.extensions.registry")


@dataclass
class ExtensionHandle:
    """One loaded extension plus its lifecycle metadata."""

    identity: str
    extension: AppExtension
    source_archive: Optional[Path] = None
    enabled: bool = True

    @property
    def info(self) -> ManifestInfo:
        return self.extension.get_info()

    def sort_key(self) -> tuple[str, str]:
        return (self.info.name, self.identity)


class ExtensionRegistry:
    """
    Loads, stores and toggles extensions.

    Identities are unique: the first extension loaded or registered under
    an identity wins, later attempts are no-ops.

    Not thread-safe. Callers that load from a worker thread must hand the
    registry back to the owning thread themselves.
    """

    def __init__(self, suffixes=ARCHIVE_SUFFIXES):
        self.suffixes = tuple(suffixes)
        self._handles: dict[str, ExtensionHandle] = {}
        self._insertion_order: list[str] = []
        self._sorted: Optional[list[ExtensionHandle]] = None
        # Hook errors, oldest first
        self.hook_failures: list[HookFailure] = []

    # ── Insertion ──────────────────────────────────────────────

    def _insert(self, handle: ExtensionHandle) -> bool:
        if handle.identity in self._handles:
            logger.info(f"Extension already loaded, ignoring: {handle.identity}")
            return False
        self._handles[handle.identity] = handle
        self._insertion_order.append(handle.identity)
        self._sorted = None
        return True

    def register(self, extension: AppExtension, enabled: bool = True) -> bool:
        """
        Register a built-in extension directly, bypassing archive loading.

        Returns:
            True if inserted, False if the identity was already present.
        """
        handle = ExtensionHandle(
            identity=extension_identity(extension),
            extension=extension,
            source_archive=None,
            enabled=enabled,
        )
        inserted = self._insert(handle)
        if inserted:
            logger.info(f"Registered extension: {handle.identity} (enabled={enabled})")
        return inserted

    def find_candidates(
        self,
        directory: Union[str, Path],
        app_name: Optional[str] = None,
        min_version: Optional[str] = None,
    ) -> dict[Path, ManifestInfo]:
        """
        Return eligible archives under directory with their manifests.

        Raises:
            FileNotFoundError / NotADirectoryError: if directory is unusable.
        """
        candidates: dict[Path, ManifestInfo] = {}
        for archive_path, manifest in scan_directory(directory, self.suffixes):
            if is_eligible(manifest, app_name, min_version, source=archive_path):
                candidates[archive_path] = manifest
        return candidates

    def load_extensions(
        self,
        directory: Union[str, Path],
        capability: type = AppExtension,
        app_name: Optional[str] = None,
        min_version: Optional[str] = None,
    ) -> list[str]:
        """
        Discover and load every eligible extension under directory.

        Archives are processed in path order. New extensions start enabled.
        A bad archive is logged and skipped; only an unusable directory
        raises.

        Args:
            directory: Root directory, searched recursively.
            capability: Class the extensions must subclass.
            app_name: Required targetAppName, or None to accept any.
            min_version: Minimum targetAppVersion, or None to accept any.

        Returns:
            Identities loaded by this call, in load order.

        / Descubre y carga las extensiones elegibles del directorio.
        """
        candidates = self.find_candidates(directory, app_name, min_version)
        loaded: list[str] = []

        for archive_path in sorted(candidates):
            extension = load_extension_from_archive(
                archive_path, capability, is_loaded=self.is_loaded
            )
            if extension is None:
                continue

            handle = ExtensionHandle(
                identity=extension_identity(extension),
                extension=extension,
                source_archive=archive_path,
                enabled=True,
            )
            if self._insert(handle):
                loaded.append(handle.identity)
                logger.info(f"Loaded extension {handle.identity} from {archive_path}")

        logger.info(f"Loaded {len(loaded)} extension(s) from {directory}")
        return loaded

    # ── Enable / disable ───────────────────────────────────────

    def _notify(self, handle: ExtensionHandle, hook: str) -> bool:
        """Invoke a lifecycle hook. Failures are recorded and logged, never raised."""
        try:
            getattr(handle.extension, hook)()
        except Exception as e:
            failure = HookFailure(handle.identity, hook, e)
            self.hook_failures.append(failure)
            logger.error(str(failure))
            return False
        return True

    def set_enabled(self, identity: str, value: bool, notify: bool = True) -> bool:
        """
        Enable or disable an extension.

        No-op if the identity is unknown or already in the requested state.
        On a real transition the flag flips first, then on_activate() or
        on_deactivate() runs when notify is True.

        Returns:
            True if the state changed.
        """
        handle = self._handles.get(identity)
        if handle is None or handle.enabled == value:
            return False

        handle.enabled = value
        if notify:
            self._notify(handle, "on_activate" if value else "on_deactivate")
        logger.debug(f"Extension {identity} {'enabled' if value else 'disabled'}")
        return True

    def activate_all(self) -> dict[str, bool]:
        """Call on_activate() on every enabled extension (host startup)."""
        return {
            h.identity: self._notify(h, "on_activate")
            for h in self._sorted_handles() if h.enabled
        }

    def deactivate_all(self) -> dict[str, bool]:
        """Call on_deactivate() on every enabled extension (host shutdown)."""
        return {
            h.identity: self._notify(h, "on_deactivate")
            for h in self._sorted_handles() if h.enabled
        }

    # ── Queries ────────────────────────────────────────────────

    def _sorted_handles(self) -> list[ExtensionHandle]:
        # Enable/disable never reorders, so only insertion invalidates this
        if self._sorted is None:
            self._sorted = sorted(self._handles.values(), key=ExtensionHandle.sort_key)
        return self._sorted

    @property
    def loaded_count(self) -> int:
        return len(self._handles)

    def is_loaded(self, identity: str) -> bool:
        return identity in self._handles

    def is_enabled(self, identity: str) -> bool:
        handle = self._handles.get(identity)
        return handle is not None and handle.enabled

    def get(self, identity: str) -> Optional[AppExtension]:
        handle = self._handles.get(identity)
        return handle.extension if handle else None

    def get_handle(self, identity: str) -> Optional[ExtensionHandle]:
        return self._handles.get(identity)

    def source_archive_of(self, identity: str) -> Optional[Path]:
        handle = self._handles.get(identity)
        return handle.source_archive if handle else None

    def handles(self) -> list[ExtensionHandle]:
        return list(self._sorted_handles())

    def all_extensions(self) -> list[AppExtension]:
        return [h.extension for h in self._sorted_handles()]

    def enabled_extensions(self) -> list[AppExtension]:
        return [h.extension for h in self._sorted_handles() if h.enabled]

    def all_loaded_identities(self) -> list[str]:
        return [h.identity for h in self._sorted_handles()]

    def insertion_order(self) -> list[str]:
        return list(self._insertion_order)

    def configuration_entries_of(self, identity: str) -> list[ConfigProperty]:
        handle = self._handles.get(identity)
        if handle is None:
            return []
        return list(handle.extension.get_config_properties() or [])

    def collect_configuration(self) -> list[ConfigProperty]:
        """
        Concatenate the configuration entries of every enabled extension,
        in sorted order. Entries sharing a name are all kept.
        """
        entries: list[ConfigProperty] = []
        for handle in self._sorted_handles():
            if handle.enabled:
                entries.extend(handle.extension.get_config_properties() or [])
        return entries
