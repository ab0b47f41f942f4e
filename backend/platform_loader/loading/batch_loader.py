from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from platform_loader.core.errors import BatchLoadError, InvalidArgument, NotRegistered
from platform_loader.loading.module_loader import ModuleHandle, ModuleLoader
from platform_loader.packages.acquirer import PackageAcquirer
from platform_loader.registry.platforms import PlatformEntry, PlatformRegistry

_log = logging.getLogger(__name__)


class TaskState(str, enum.Enum):
    PENDING = 'pending'
    RESOLVING = 'resolving'
    RESOLVED = 'resolved'
    FAILED = 'failed'


@dataclass
class LoadTask:
    module_name: str
    install_source: str
    entries: List[PlatformEntry] = field(default_factory=list)
    state: TaskState = TaskState.PENDING
    future: Optional[asyncio.Future] = field(default=None, repr=False)

    @property
    def platform_ids(self) -> List[str]:
        return [entry.id for entry in self.entries]


@dataclass
class LoadOutcome:
    module_name: Optional[str]
    platform_ids: List[str]
    instance: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BatchLoader:
    """Loads a set of platform ids, one module resolution per distinct module.

    Every task is settled before the batch completes; a failing module group
    never hides the outcome of the others.
    """

    def __init__(self, registry: PlatformRegistry, module_loader: ModuleLoader, acquirer: PackageAcquirer):
        self._registry = registry
        self._module_loader = module_loader
        self._acquirer = acquirer

    def plan(self, platform_ids: Iterable[str]) -> Tuple[List[LoadTask], List[Union[LoadTask, LoadOutcome]]]:
        """Group platform ids by backing module.

        Returns the load tasks (one per module, in first-seen order) and the
        ordered slots used to report outcomes, where unknown ids are already
        failed outcomes. An entry missing its module name or install source
        gets a task of its own, which fails on its own.
        """
        tasks: List[LoadTask] = []
        by_module: Dict[str, LoadTask] = {}
        slots: List[Union[LoadTask, LoadOutcome]] = []
        seen: set[str] = set()
        for platform_id in platform_ids:
            if platform_id in seen:
                continue
            seen.add(platform_id)
            entry = self._registry.lookup(platform_id)
            if entry is None:
                slots.append(LoadOutcome(module_name=None, platform_ids=[platform_id], error=NotRegistered(platform_id)))
                continue
            complete = bool(entry.module_name and entry.install_source)
            task = by_module.get(entry.module_name) if complete else None
            if task is None:
                task = LoadTask(module_name=entry.module_name, install_source=entry.install_source)
                if complete:
                    by_module[entry.module_name] = task
                tasks.append(task)
                slots.append(task)
            task.entries.append(entry)
        return tasks, slots

    async def load_batch(
        self,
        platform_ids: Iterable[str],
        *,
        return_outcomes: bool = False,
    ) -> Union[List[Any], List[LoadOutcome]]:
        if isinstance(platform_ids, (str, bytes)):
            raise InvalidArgument('platform_ids must be a sequence of ids, not a single string.')
        tasks, slots = self.plan(platform_ids)

        for task in tasks:
            task.state = TaskState.RESOLVING
            task.future = self._module_loader.resolve_module(task.module_name, task.install_source)

        # one install pass for everything the tasks above queued
        flush_error: Optional[Exception] = None
        try:
            await self._acquirer.flush_installs()
        except Exception as exc:  # noqa: BLE001 - becomes the error of every task waiting on an install
            flush_error = exc
            _log.error("package installation pass failed: %s", exc)
            # let waiters whose installs did settle finish first
            await asyncio.sleep(0)
            for task in tasks:
                if not task.future.done():
                    task.future.cancel()

        results = await asyncio.gather(*(task.future for task in tasks), return_exceptions=True)
        if flush_error is not None:
            results = [flush_error if isinstance(r, asyncio.CancelledError) else r for r in results]
        completed: Dict[int, LoadOutcome] = {
            id(task): self._complete(task, result) for task, result in zip(tasks, results)
        }

        outcomes: List[LoadOutcome] = []
        for slot in slots:
            if isinstance(slot, LoadTask):
                outcomes.append(completed[id(slot)])
            else:
                _log.warning("%s", slot.error)
                outcomes.append(slot)

        if return_outcomes:
            return outcomes
        if any(not outcome.ok for outcome in outcomes):
            raise BatchLoadError(outcomes)
        return [outcome.instance for outcome in outcomes]

    def _complete(self, task: LoadTask, result: Union[ModuleHandle, BaseException]) -> LoadOutcome:
        platform_ids = task.platform_ids
        if isinstance(result, BaseException):
            task.state = TaskState.FAILED
            _log.error("failed to load module=%s platforms=%s: %s", task.module_name, platform_ids, result)
            return LoadOutcome(module_name=task.module_name, platform_ids=platform_ids, error=result)
        try:
            instance = result.constructor(task.module_name, list(platform_ids))
        except Exception as exc:  # noqa: BLE001 - a failing constructor fails only its own group
            task.state = TaskState.FAILED
            _log.error("failed to create platform module=%s platforms=%s: %s", task.module_name, platform_ids, exc)
            return LoadOutcome(module_name=task.module_name, platform_ids=platform_ids, error=exc)
        self._registry.assign(task.entries, instance)
        task.state = TaskState.RESOLVED
        _log.info("loaded module=%s platforms=%s", task.module_name, ', '.join(platform_ids))
        return LoadOutcome(module_name=task.module_name, platform_ids=platform_ids, instance=instance)
