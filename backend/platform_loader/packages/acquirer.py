"""Package acquisition: queue installs of missing modules, run them in one pass."""

from __future__ import annotations

import asyncio
import importlib
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Dict, List, Optional, Protocol, Sequence, Tuple

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from platform_loader.core.config import settings
from platform_loader.core.errors import InstallError

_log = logging.getLogger(__name__)

_OUTPUT_TAIL = 4000


class PackageAcquirer(Protocol):
    def queue_install(self, module_name: str, install_source: str) -> Awaitable[None]:
        """Queue `module_name` for installation; the awaitable completes once it is installed."""
        ...

    async def flush_installs(self) -> None:
        """Install everything queued so far. Failures are delivered through the queued awaitables."""
        ...


def distribution_name(module_name: str) -> str:
    return module_name.split('.', 1)[0].replace('_', '-')


def install_target(module_name: str, install_source: str) -> str:
    """Translate an install source into a pip argument.

    `1.2.0` -> `<dist>==1.2.0`, `>=1.0,<2` -> `<dist>>=1.0,<2`; requirement
    strings, URLs, VCS links and paths are passed through unchanged.
    """
    source = install_source.strip()
    dist = distribution_name(module_name)
    try:
        Version(source)
        return f'{dist}=={source}'
    except InvalidVersion:
        pass
    if source and source[0] in '<>=!~':
        try:
            SpecifierSet(source)
            return f'{dist}{source}'
        except InvalidSpecifier:
            pass
    return source


@dataclass
class _QueuedInstall:
    module_name: str
    target: str
    future: asyncio.Future = field(repr=False)


class PipPackageAcquirer:
    """Runs one `pip install` per flush for every target queued since the last one."""

    def __init__(self, pip_command: Optional[Sequence[str]] = None, extra_args: Optional[Sequence[str]] = None):
        self._pip_command = list(pip_command or settings.pip_command)
        self._extra_args = list(settings.pip_args if extra_args is None else extra_args)
        self._queue: Dict[str, _QueuedInstall] = {}

    @property
    def queued(self) -> List[str]:
        return list(self._queue)

    def queue_install(self, module_name: str, install_source: str) -> asyncio.Future:
        existing = self._queue.get(module_name)
        if existing is not None:
            return existing.future
        future = asyncio.get_running_loop().create_future()
        target = install_target(module_name, install_source)
        self._queue[module_name] = _QueuedInstall(module_name=module_name, target=target, future=future)
        _log.debug("queued install module=%s target=%s", module_name, target)
        return future

    async def flush_installs(self) -> None:
        if not self._queue:
            return
        batch = list(self._queue.values())
        self._queue = {}
        targets = list(dict.fromkeys(item.target for item in batch))
        _log.info("installing %d package(s): %s", len(targets), ' '.join(targets))

        error: InstallError | None = None
        try:
            returncode, output = await self._run_pip(targets)
        except OSError as exc:
            error = InstallError(targets, None, str(exc))
            error.__cause__ = exc
        else:
            if returncode != 0:
                error = InstallError(targets, returncode, output[-_OUTPUT_TAIL:])

        if error is not None:
            _log.error("package installation failed: %s", error)
            for item in batch:
                if not item.future.done():
                    item.future.set_exception(error)
            return

        importlib.invalidate_caches()
        _log.info("installed %s", ' '.join(targets))
        for item in batch:
            if not item.future.done():
                item.future.set_result(None)

    async def _run_pip(self, targets: Sequence[str]) -> Tuple[int, str]:
        cmd = [*self._pip_command, 'install', *self._extra_args, *targets]
        _log.debug("running %s", ' '.join(cmd))
        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        out, _ = await proc.communicate()
        output = out.decode('utf-8', errors='replace') if out else ''
        if output:
            _log.debug("pip output:\n%s", output[-_OUTPUT_TAIL:])
        return proc.returncode or 0, output
