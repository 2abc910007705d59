"""
appext Extension Errors

Typed failures raised while discovering, loading and notifying extensions.
None of them escape a bulk operation (load_extensions, activate_all,
deactivate_all): the boundary catches, logs and moves on to the next candidate.

/ Errores tipados del sistema de extensiones.
"""

from typing import Optional


class ExtensionError(Exception):
    """Base class for all extension failures."""


class MalformedManifest(ExtensionError):
    """The manifest payload could not be parsed or lacks required fields."""


class IncompatibleTarget(ExtensionError):
    """The manifest targets a different application or an older version."""


class LoadFailure(ExtensionError):
    """The archive could not be read or its extension could not be instantiated."""

    def __init__(self, archive, reason: str):
        self.archive = archive
        self.reason = reason
        super().__init__(f"{archive}: {reason}")


class HookFailure(ExtensionError):
    """An extension's on_activate / on_deactivate hook raised."""

    def __init__(self, identity: str, hook: str, cause: Optional[BaseException] = None):
        self.identity = identity
        self.hook = hook
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown error"
        super().__init__(f"{identity}.{hook}() failed: {detail}")
