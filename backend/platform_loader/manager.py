from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

from platform_loader.loading.batch_loader import BatchLoader, LoadOutcome
from platform_loader.loading.module_loader import ModuleLoader, PlatformConstructor
from platform_loader.packages.acquirer import PackageAcquirer, PipPackageAcquirer
from platform_loader.packages.resolver import ImportlibModuleResolver, ModuleResolver
from platform_loader.registry import config_store
from platform_loader.registry.platforms import PlatformRegistry


class PlatformManager:
    """Caller-facing API over one platform registry.

    Each manager owns its own registry, resolver and acquirer; there is no
    module-level registry. Pass the manager to whatever needs platforms.

        manager = PlatformManager()
        manager.enable_platforms({'android': {'moduleName': 'pl_cordova', 'installSource': '>=1.0'}})
        await manager.load_platforms(['android'])
        manager.get_platform('android')
    """

    def __init__(
        self,
        config_path: Path | str | None = None,
        *,
        resolver: Optional[ModuleResolver] = None,
        acquirer: Optional[PackageAcquirer] = None,
        registry: Optional[PlatformRegistry] = None,
    ):
        self.config_path = Path(config_path) if config_path else None
        self.resolver: ModuleResolver = resolver or ImportlibModuleResolver()
        self.acquirer: PackageAcquirer = acquirer or PipPackageAcquirer()
        self.registry = registry or PlatformRegistry(self.config_path)
        self.module_loader = ModuleLoader(self.resolver, self.acquirer)
        self.batch_loader = BatchLoader(self.registry, self.module_loader, self.acquirer)

    # registry ---------------------------------------------------------
    def enable_platforms(self, config: Mapping[str, Any] | None = None) -> None:
        self.registry.enable(config)

    def get_platform(self, platform_id: str) -> Any:
        return self.registry.get(platform_id)

    def get_all_platforms(self) -> List[Any]:
        return self.registry.get_all()

    def registered_platforms(self) -> List[str]:
        return self.registry.ids()

    # loading ----------------------------------------------------------
    async def load_platforms(
        self,
        platform_ids: Iterable[str],
        *,
        return_outcomes: bool = False,
    ) -> Union[List[Any], List[LoadOutcome]]:
        return await self.batch_loader.load_batch(platform_ids, return_outcomes=return_outcomes)

    async def load_platform(self, module_name: str, install_source: str) -> PlatformConstructor:
        return await self.module_loader.load_platform(module_name, install_source)

    # configuration store ----------------------------------------------
    async def add_platform(self, platform_id: str, module_name: str, install_source: str) -> None:
        await config_store.add_platform(platform_id, module_name, install_source, self.config_path)

    async def remove_platform(self, platform_id: str) -> None:
        await config_store.remove_platform(platform_id, self.config_path)

    async def list_platforms(self) -> List[str]:
        return await config_store.list_platforms(self.config_path)

    def list_platforms_sync(self) -> List[str]:
        return config_store.list_platforms_sync(self.config_path)
