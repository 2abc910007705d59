"""
appext Extension Settings

Couples an ExtensionRegistry to a PropertiesStore. The registry and the
store each hold an enabled flag per extension; neither knows the other
exists. This class keeps them in step at every checkpoint:

- load():    the store wins. Persisted flags are pushed into the registry
             without firing activation hooks (the host is still starting).
- save() / prepare_for_display():
             the registry wins. Live flags are written back to the store.
- is_extension_enabled():
             a query with a healing side effect. If the registry disagrees
             with the store, the registry's value is written to the store
             and returned.
- set_extension_enabled():
             writes the store and forwards the change to the registry.

Each extension's configuration entries are shown or hidden to match its
enabled flag. Their values are loaded and saved either way.

When both sides change between checkpoints there is no merge: whichever
side the checkpoint trusts overwrites the other.

/ Sincroniza el estado habilitado entre el registro y el almacen de
/ propiedades en cada punto de control.
"""

import logging
from pathlib import Path
from typing import Optional, Union

from appext.core.properties import ConfigProperty, PropertiesStore
from appext.extensions.registry import ExtensionRegistry

logger = logging.getLogger("appext.extensions.settings")

ENABLED_KEY_PREFIX = "extension.enabled."


def enabled_key(identity: str) -> str:
    """Store key holding the persisted enabled flag of an extension."""
    return f"{ENABLED_KEY_PREFIX}{identity}"


class ExtensionSettings:
    """
    Application settings that know about extensions.

    Subclass and override create_internal_properties() to add the host's own
    configuration entries; extension entries are appended after them.
    """

    def __init__(
        self,
        app_name: str,
        settings_file: Union[str, Path],
        registry: Optional[ExtensionRegistry] = None,
    ):
        self.app_name = app_name
        self.settings_file = Path(settings_file)
        self.registry = registry
        self.store = self._create_store()

    def create_internal_properties(self) -> list[ConfigProperty]:
        """Host-owned configuration entries. Override in subclasses."""
        return []

    def _create_store(self) -> PropertiesStore:
        properties = list(self.create_internal_properties())

        # Disabled extensions still contribute entries so their values
        # survive a load/save cycle; load() hides them.
        if self.registry is not None:
            for identity in self.registry.all_loaded_identities():
                properties.extend(self.registry.configuration_entries_of(identity))

        return PropertiesStore(
            self.settings_file,
            properties,
            description=f"{self.app_name} application properties",
        )

    # ── Checkpoints ────────────────────────────────────────────

    def load(self) -> None:
        """Load the store from disk, then pull enabled flags into the registry."""
        try:
            self.store.load()
        except OSError as e:
            logger.error(f"Failed to load application properties from {self.settings_file}: {e}")

        self.pull_from_store()

    def save(self) -> None:
        """Push live enabled flags into the store, then write it to disk."""
        self.push_to_store()
        self.store.save()

    def prepare_for_display(self) -> list[ConfigProperty]:
        """
        Reconcile before a settings screen is shown.

        Returns:
            The configuration entries that should be visible.
        """
        self.push_to_store()
        return self.store.visible_properties()

    # ── Sync directions ────────────────────────────────────────

    def pull_from_store(self) -> None:
        """Store -> registry. Activation hooks are not fired."""
        if self.registry is None:
            return

        for identity in self.registry.all_loaded_identities():
            enabled = self.store.get_bool(enabled_key(identity), True)
            self.registry.set_enabled(identity, enabled, notify=False)
            self._set_entries_visible(identity, enabled)

    def push_to_store(self) -> None:
        """Registry -> store, via heal_on_query() for every loaded extension."""
        if self.registry is None:
            return

        for identity in self.registry.all_loaded_identities():
            enabled = self.heal_on_query(identity, False)
            self._set_entries_visible(identity, enabled)

    def heal_on_query(self, identity: str, default: bool) -> bool:
        """
        Read the persisted flag, correcting it from the registry if they differ.

        This is a query with a side effect: when the registry's live flag
        disagrees with the store, the live flag is written to the store and
        returned. An identity the registry does not know reads as disabled.
        """
        key = enabled_key(identity)
        persisted = self.store.get_bool(key, default)

        if self.registry is not None:
            live = self.registry.is_enabled(identity)
            if live != persisted:
                logger.debug(f"Healing persisted flag for {identity}: {persisted} -> {live}")
                self.store.set_bool(key, live)
                persisted = live

        return persisted

    def _set_entries_visible(self, identity: str, enabled: bool) -> None:
        for entry in self.registry.configuration_entries_of(identity):
            stored = self.store.get_property(entry.fully_qualified_name)
            if stored is not None:
                stored.enabled = enabled

    # ── Public flag accessors ──────────────────────────────────

    def is_extension_enabled(self, identity: str, default: bool = True) -> bool:
        """See heal_on_query(): this may write to the store."""
        return self.heal_on_query(identity, default)

    def set_extension_enabled(self, identity: str, value: bool) -> None:
        """Persist the flag and forward it to the registry (hooks fire)."""
        self.store.set_bool(enabled_key(identity), value)
        if self.registry is not None:
            self.registry.set_enabled(identity, value)
