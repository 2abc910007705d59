"""
appext Extension Management Tools

List, inspect and toggle loaded extensions. These back the MCP tools
exposed by appext.server and are the programmatic stand-in for an
extension manager screen: every change goes through ExtensionSettings so
the persisted settings stay in step with the registry.

/ Herramientas para listar, inspeccionar y habilitar/deshabilitar extensiones.
"""

import logging

from appext.extensions.registry import ExtensionHandle, ExtensionRegistry
from appext.extensions.settings import ExtensionSettings

logger = logging.getLogger("appext.tools.extensions")


def _summary(handle: ExtensionHandle) -> dict:
    info = handle.info
    return {
        "identity": handle.identity,
        "name": info.name,
        "version": info.version,
        "author": info.author,
        "description": info.short_description,
        "enabled": handle.enabled,
        "source": str(handle.source_archive) if handle.source_archive else "built-in",
    }


async def extensions_list(registry: ExtensionRegistry, enabled_only: bool = False) -> dict:
    """
    List loaded extensions, sorted by name.

    Args:
        registry: The host's extension registry.
        enabled_only: Only include enabled extensions.

    Returns:
        Dictionary with the extensions and counts.

    / Lista las extensiones cargadas, ordenadas por nombre.
    """
    handles = [h for h in registry.handles() if h.enabled or not enabled_only]
    extensions = [_summary(h) for h in handles]
    return {
        "success": True,
        "extensions": extensions,
        "count": len(extensions),
        "enabled": sum(1 for e in extensions if e["enabled"]),
    }


async def extension_info(registry: ExtensionRegistry, identity: str) -> dict:
    """
    Full manifest and configuration entries of one extension.

    / Manifiesto completo y propiedades de una extension.
    """
    handle = registry.get_handle(identity)
    if handle is None:
        return {"error": f"Extension '{identity}' is not loaded"}

    return {
        "success": True,
        **_summary(handle),
        "manifest": handle.info.to_dict(),
        "properties": [
            {"name": p.fully_qualified_name, "label": p.label, "value": p.value}
            for p in registry.configuration_entries_of(identity)
        ],
        "hook_failures": [
            str(f) for f in registry.hook_failures if f.identity == identity
        ],
    }


async def extension_set_enabled(
    settings: ExtensionSettings,
    identity: str,
    enabled: bool,
) -> dict:
    """
    Enable or disable an extension and persist the change.

    Args:
        settings: Settings bound to the host's registry.
        identity: Fully qualified extension class name.
        enabled: Target state.

    Returns:
        Dictionary with the resulting state.

    / Habilita o deshabilita una extension y guarda el cambio.
    """
    registry = settings.registry
    if registry is None or not registry.is_loaded(identity):
        return {"error": f"Extension '{identity}' is not loaded"}

    was_enabled = registry.is_enabled(identity)
    settings.set_extension_enabled(identity, enabled)

    try:
        settings.save()
    except OSError as e:
        logger.error(f"Failed to save settings after toggling {identity}: {e}")
        return {"error": f"State changed but settings were not saved: {e}", "identity": identity}

    return {
        "success": True,
        "identity": identity,
        "enabled": registry.is_enabled(identity),
        "changed": was_enabled != registry.is_enabled(identity),
    }


async def extension_settings(settings: ExtensionSettings) -> dict:
    """
    Visible configuration entries after reconciling enabled flags.

    / Propiedades visibles tras reconciliar el estado de las extensiones.
    """
    visible = settings.prepare_for_display()
    return {
        "success": True,
        "app": settings.app_name,
        "properties": [
            {"name": p.fully_qualified_name, "label": p.label, "value": p.value}
            for p in visible
        ],
        "count": len(visible),
    }
