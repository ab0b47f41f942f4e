from __future__ import annotations

import importlib
from types import ModuleType
from typing import Protocol

from platform_loader.core.errors import ResolutionError, ResolutionKind


class ModuleResolver(Protocol):
    def resolve(self, module_name: str) -> ModuleType:
        """Return the imported module or raise ResolutionError."""
        ...


def _is_missing_module(module_name: str, exc: ModuleNotFoundError) -> bool:
    # A ModuleNotFoundError raised for one of the module's own imports is not
    # the module being absent.
    missing = exc.name or ''
    if not missing:
        return False
    return module_name == missing or module_name.startswith(missing + '.')


class ImportlibModuleResolver:
    """Resolve modules with importlib, telling "not installed" apart from broken."""

    def resolve(self, module_name: str) -> ModuleType:
        try:
            return importlib.import_module(module_name)
        except ModuleNotFoundError as exc:
            kind = ResolutionKind.NOT_FOUND if _is_missing_module(module_name, exc) else ResolutionKind.OTHER
            raise ResolutionError(module_name, kind) from exc
        except Exception as exc:  # noqa: BLE001 - any import-time failure of the plugin itself
            raise ResolutionError(module_name, ResolutionKind.OTHER) from exc
