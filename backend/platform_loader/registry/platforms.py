from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from platform_loader.core.errors import NotLoaded, NotRegistered, RegistryNotEnabled
from platform_loader.registry.config_store import PlatformSpec, parse_config, read_config

_log = logging.getLogger(__name__)


@dataclass
class PlatformEntry:
    id: str
    module_name: str
    install_source: str
    instance: Any = None

    @property
    def loaded(self) -> bool:
        return self.instance is not None


class PlatformRegistry:
    """Mapping of platform id -> PlatformEntry.

    The mapping is replaced wholesale by enable(); it is never merged. The
    only other mutation is assign(), which runs without suspension points so
    readers never observe a half-assigned group.
    """

    def __init__(self, default_config_path: Path | str | None = None):
        self._entries: Optional[Dict[str, PlatformEntry]] = None
        self._default_config_path = default_config_path

    @property
    def enabled(self) -> bool:
        return self._entries is not None

    def enable(self, config: Mapping[str, Any] | None = None) -> None:
        if config is None:
            specs = read_config(self._default_config_path)
        else:
            specs = parse_config(config)
        self._entries = {
            platform_id: _entry_from_spec(platform_id, spec)
            for platform_id, spec in specs.items()
        }
        _log.debug("enabled %d platform(s): %s", len(self._entries), ', '.join(self._entries))

    def _require_entries(self) -> Dict[str, PlatformEntry]:
        if self._entries is None:
            raise RegistryNotEnabled()
        return self._entries

    def lookup(self, platform_id: str) -> PlatformEntry | None:
        return self._require_entries().get(platform_id)

    def get(self, platform_id: str) -> Any:
        entry = self._require_entries().get(platform_id)
        if entry is None:
            raise NotRegistered(platform_id)
        if entry.instance is None:
            raise NotLoaded(platform_id)
        return entry.instance

    def get_all(self) -> List[Any]:
        # Unloaded entries are skipped rather than reported.
        return [entry.instance for entry in self._require_entries().values() if entry.instance is not None]

    def ids(self) -> List[str]:
        return list(self._require_entries())

    def assign(self, entries: Iterable[PlatformEntry], instance: Any) -> None:
        for entry in entries:
            entry.instance = instance


def _entry_from_spec(platform_id: str, spec: PlatformSpec) -> PlatformEntry:
    return PlatformEntry(id=platform_id, module_name=spec.module_name, install_source=spec.install_source)
