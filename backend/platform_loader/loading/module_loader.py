from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List

from platform_loader.core.errors import InvalidArgument, ResolutionError, ResolutionKind
from platform_loader.packages.acquirer import PackageAcquirer
from platform_loader.packages.resolver import ModuleResolver

_log = logging.getLogger(__name__)

# Name of the constructor every platform module exports.
PLATFORM_EXPORT = 'Platform'

PlatformConstructor = Callable[[str, List[str]], Any]


@dataclass(frozen=True)
class ModuleHandle:
    module_name: str
    constructor: PlatformConstructor


def _failed(exc: BaseException) -> asyncio.Future:
    future = asyncio.get_running_loop().create_future()
    future.set_exception(exc)
    return future


def _completed(value: Any) -> asyncio.Future:
    future = asyncio.get_running_loop().create_future()
    future.set_result(value)
    return future


class ModuleLoader:
    """Resolves a module name to its exported platform constructor.

    Missing modules are only queued with the acquirer here; the caller is
    responsible for flushing the acquirer so a whole batch installs in one
    pass.
    """

    def __init__(self, resolver: ModuleResolver, acquirer: PackageAcquirer):
        self._resolver = resolver
        self._acquirer = acquirer

    def resolve_module(self, module_name: str, install_source: str) -> asyncio.Future:
        """Start resolving `module_name` and return a future for its ModuleHandle.

        Argument validation, the direct import attempt and install queueing
        all happen before this returns; only the wait for the install is
        deferred.
        """
        if not module_name:
            return _failed(InvalidArgument('Platform name is missing or invalid.'))
        if not install_source:
            return _failed(InvalidArgument('Platform package source is missing or invalid.'))

        _log.debug("Loading platform module: %s", module_name)
        try:
            return _completed(self._handle(module_name))
        except ResolutionError as exc:
            if not exc.not_found:
                return _failed(exc)

        try:
            pending = self._acquirer.queue_install(module_name, install_source)
        except Exception as exc:  # noqa: BLE001 - reported as this module's failure
            return _failed(exc)
        _log.debug("module %s not installed; queued install from %s", module_name, install_source)
        return asyncio.ensure_future(self._resolve_after_install(module_name, pending))

    async def _resolve_after_install(self, module_name: str, pending: Awaitable[None]) -> ModuleHandle:
        await pending
        return self._handle(module_name)

    def _handle(self, module_name: str) -> ModuleHandle:
        try:
            module = self._resolver.resolve(module_name)
        except ResolutionError:
            raise
        except Exception as exc:
            raise ResolutionError(module_name, ResolutionKind.OTHER) from exc
        constructor = getattr(module, PLATFORM_EXPORT, None)
        if not callable(constructor):
            raise ResolutionError(
                module_name,
                ResolutionKind.OTHER,
                f"Module '{module_name}' does not export a callable '{PLATFORM_EXPORT}'.",
            )
        return ModuleHandle(module_name=module_name, constructor=constructor)

    async def load_platform(self, module_name: str, install_source: str) -> PlatformConstructor:
        """Resolve a single module, installing it if needed, and return its constructor."""
        future = self.resolve_module(module_name, install_source)
        try:
            await self._acquirer.flush_installs()
        except Exception:
            future.cancel()
            raise
        handle = await future
        return handle.constructor
