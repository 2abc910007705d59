"""
Extension base class

Every loadable extension implements AppExtension. The host only ever talks
to extensions through this interface.
"""

from abc import ABC, abstractmethod

from appext.core.properties import ConfigProperty
from appext.extensions.manifest import ManifestInfo


class AppExtension(ABC):
    """
    Capability interface for all extensions.

    Extensions must implement:
    - get_info(): Return the ManifestInfo describing this extension

    Optionally override:
    - get_config_properties(): Configuration entries this extension owns
    - on_activate(): Called when the extension is enabled
    - on_deactivate(): Called when the extension is disabled
    """

    @abstractmethod
    def get_info(self) -> ManifestInfo:
        """Return extension metadata"""
        ...

    def get_config_properties(self) -> list[ConfigProperty]:
        """
        Return configuration entries owned by this extension.
        Their visibility follows the extension's enabled state.
        """
        return []

    def on_activate(self) -> None:
        """Called when the extension transitions to enabled"""

    def on_deactivate(self) -> None:
        """Called when the extension transitions to disabled"""
