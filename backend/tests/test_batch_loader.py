"""
Batch loading tests: module deduplication, single install pass and
settle-all failure reporting.
"""

import pytest

from platform_loader.core.errors import (
    BatchLoadError,
    InstallError,
    InvalidArgument,
    NotLoaded,
    NotRegistered,
    ResolutionError,
    ResolutionKind,
)
from platform_loader.loading.batch_loader import TaskState
from platform_loader.manager import PlatformManager
from tests.platform_fakes import CrashingAcquirer, ExplodingPlatform, RecordingPlatform, make_module


class TestDeduplication:

    @pytest.mark.asyncio
    async def test_shared_module_resolved_once(self, manager, resolver, scenario_config):
        resolver.installed['modA'] = make_module('modA')
        resolver.installed['modC'] = make_module('modC')
        manager.enable_platforms(scenario_config)

        instances = await manager.load_platforms(['a', 'b'])
        assert resolver.calls == ['modA']
        assert len(instances) == 1
        assert manager.get_platform('a') is manager.get_platform('b')
        assert instances[0].platforms == ['a', 'b']
        assert instances[0].id == 'modA'

    @pytest.mark.asyncio
    async def test_missing_shared_module_installed_once(self, manager, acquirer):
        acquirer.index['m'] = make_module('m')
        manager.enable_platforms({
            'p1': {'moduleName': 'm', 'installSource': 'src'},
            'p2': {'moduleName': 'm', 'installSource': 'src'},
        })

        instances = await manager.load_platforms(['p1', 'p2'])
        assert acquirer.queued == [('m', 'src')]
        assert acquirer.installed == [('m', 'src')]
        assert len(instances) == 1
        assert manager.get_platform('p1') is manager.get_platform('p2')
        assert manager.get_platform('p1').platforms == ['p1', 'p2']

    @pytest.mark.asyncio
    async def test_scenario(self, manager, acquirer, scenario_config, scenario_index):
        acquirer.index.update(scenario_index)
        manager.enable_platforms(scenario_config)

        instances = await manager.load_platforms(['a', 'b', 'c'])
        assert sorted(acquirer.installed) == [('modA', 'src'), ('modC', 'src2')]
        assert acquirer.flush_count == 1
        assert len(instances) == 2
        assert manager.get_platform('a') is manager.get_platform('b')
        assert manager.get_platform('c') is not manager.get_platform('a')
        assert manager.get_platform('c').platforms == ['c']
        assert len(manager.get_all_platforms()) == 3

    @pytest.mark.asyncio
    async def test_repeated_ids_counted_once(self, manager, acquirer, scenario_config, scenario_index):
        acquirer.index.update(scenario_index)
        manager.enable_platforms(scenario_config)

        instances = await manager.load_platforms(['a', 'a', 'b'])
        assert len(instances) == 1
        assert instances[0].platforms == ['a', 'b']

    def test_plan_groups_by_module(self, manager, scenario_config):
        manager.enable_platforms(scenario_config)
        tasks, slots = manager.batch_loader.plan(['c', 'a', 'nope', 'b'])

        assert [t.module_name for t in tasks] == ['modC', 'modA']
        assert [t.platform_ids for t in tasks] == [['c'], ['a', 'b']]
        assert all(t.state is TaskState.PENDING for t in tasks)
        assert len(slots) == 3
        assert isinstance(slots[2].error, NotRegistered)


class TestFailureIsolation:

    @pytest.mark.asyncio
    async def test_unregistered_id_does_not_block_others(self, manager, acquirer, scenario_config, scenario_index):
        acquirer.index.update(scenario_index)
        manager.enable_platforms(scenario_config)

        with pytest.raises(BatchLoadError) as info:
            await manager.load_platforms(['a', 'ghost', 'c'])
        err = info.value
        assert len(err.failures) == 1
        assert isinstance(err.failures[0].error, NotRegistered)
        assert err.failures[0].platform_ids == ['ghost']
        assert len(err.instances) == 2
        # successes are still registered
        assert manager.get_platform('a').platforms == ['a']
        assert manager.get_platform('c').platforms == ['c']

    @pytest.mark.asyncio
    async def test_outcomes_reported_per_group(self, manager, acquirer, scenario_config):
        acquirer.index['modC'] = make_module('modC')
        manager.enable_platforms(scenario_config)

        outcomes = await manager.load_platforms(['a', 'b', 'c', 'ghost'], return_outcomes=True)
        assert [o.platform_ids for o in outcomes] == [['a', 'b'], ['c'], ['ghost']]
        assert isinstance(outcomes[0].error, InstallError)
        assert outcomes[1].ok and isinstance(outcomes[1].instance, RecordingPlatform)
        assert isinstance(outcomes[2].error, NotRegistered)

    @pytest.mark.asyncio
    async def test_broken_module_fails_only_its_group(self, manager, resolver, scenario_config):
        resolver.installed['modC'] = make_module('modC')
        resolver.broken['modA'] = ImportError('boom')
        manager.enable_platforms(scenario_config)

        outcomes = await manager.load_platforms(['a', 'b', 'c'], return_outcomes=True)
        failed = [o for o in outcomes if not o.ok]
        assert len(failed) == 1
        assert failed[0].platform_ids == ['a', 'b']
        assert isinstance(failed[0].error, ResolutionError)
        assert manager.get_platform('c').id == 'modC'

    @pytest.mark.asyncio
    async def test_constructor_failure_fails_only_its_group(self, manager, resolver, scenario_config):
        resolver.installed['modA'] = make_module('modA', platform_cls=ExplodingPlatform)
        resolver.installed['modC'] = make_module('modC')
        manager.enable_platforms(scenario_config)

        with pytest.raises(BatchLoadError) as info:
            await manager.load_platforms(['a', 'b', 'c'])
        assert isinstance(info.value.failures[0].error, RuntimeError)
        assert [i.id for i in info.value.instances] == ['modC']
        assert manager.get_all_platforms() == [manager.get_platform('c')]

    @pytest.mark.asyncio
    async def test_flush_happens_once_even_when_nothing_missing(self, manager, resolver, acquirer, scenario_config):
        resolver.installed['modA'] = make_module('modA')
        manager.enable_platforms(scenario_config)

        await manager.load_platforms(['a'])
        assert acquirer.flush_count == 1
        assert acquirer.queued == []

    @pytest.mark.asyncio
    async def test_string_instead_of_sequence(self, manager, scenario_config):
        manager.enable_platforms(scenario_config)
        with pytest.raises(InvalidArgument):
            await manager.load_platforms('a')

    @pytest.mark.asyncio
    async def test_empty_batch(self, manager, acquirer, scenario_config):
        manager.enable_platforms(scenario_config)
        assert await manager.load_platforms([]) == []
        assert acquirer.flush_count == 1


class TestIncompleteEntries:

    @pytest.mark.asyncio
    async def test_empty_source_fails_only_its_platform(self, manager, resolver):
        resolver.installed['modA'] = make_module('modA')
        manager.enable_platforms({
            'a': {'moduleName': 'modA', 'installSource': 'src'},
            'b': {'moduleName': 'modB', 'installSource': ''},
        })

        outcomes = await manager.load_platforms(['a', 'b'], return_outcomes=True)
        assert outcomes[0].ok
        assert outcomes[0].platform_ids == ['a']
        assert isinstance(outcomes[1].error, InvalidArgument)
        assert outcomes[1].platform_ids == ['b']
        assert manager.get_platform('a').platforms == ['a']
        with pytest.raises(NotLoaded):
            manager.get_platform('b')

    @pytest.mark.asyncio
    async def test_entries_without_module_name_are_not_grouped(self, manager, resolver, acquirer):
        resolver.installed['modA'] = make_module('modA')
        manager.enable_platforms({
            'a': {'moduleName': 'modA', 'installSource': 'src'},
            'x': {'installSource': 'src'},
            'y': {'moduleName': '  ', 'installSource': 'src'},
        })

        outcomes = await manager.load_platforms(['x', 'a', 'y'], return_outcomes=True)
        assert [o.platform_ids for o in outcomes] == [['x'], ['a'], ['y']]
        assert isinstance(outcomes[0].error, InvalidArgument)
        assert outcomes[1].ok
        assert isinstance(outcomes[2].error, InvalidArgument)
        assert acquirer.queued == []


class TestUnexpectedErrors:

    @pytest.mark.asyncio
    async def test_crashing_install_pass_fails_waiting_groups(self, resolver, tmp_path, scenario_config):
        resolver.installed['modC'] = make_module('modC')
        acquirer = CrashingAcquirer(resolver)
        manager = PlatformManager(tmp_path / 'platforms.json', resolver=resolver, acquirer=acquirer)
        manager.enable_platforms(scenario_config)

        outcomes = await manager.load_platforms(['a', 'b', 'c'], return_outcomes=True)
        assert [o.platform_ids for o in outcomes] == [['a', 'b'], ['c']]
        assert isinstance(outcomes[0].error, RuntimeError)
        assert str(outcomes[0].error) == 'installer crashed'
        assert outcomes[1].ok
        assert manager.get_platform('c').id == 'modC'
        assert acquirer.flush_count == 1

    @pytest.mark.asyncio
    async def test_crashing_install_pass_raises_batch_error(self, resolver, tmp_path, scenario_config):
        acquirer = CrashingAcquirer(resolver)
        manager = PlatformManager(tmp_path / 'platforms.json', resolver=resolver, acquirer=acquirer)
        manager.enable_platforms(scenario_config)

        with pytest.raises(BatchLoadError) as info:
            await manager.load_platforms(['a', 'c'])
        assert len(info.value.failures) == 2
        assert all(isinstance(o.error, RuntimeError) for o in info.value.failures)

    @pytest.mark.asyncio
    async def test_unclassified_resolver_error_fails_only_its_group(self, manager, resolver, scenario_config):
        cause = KeyError('modA')
        resolver.crashing['modA'] = cause
        resolver.installed['modC'] = make_module('modC')
        manager.enable_platforms(scenario_config)

        outcomes = await manager.load_platforms(['a', 'b', 'c'], return_outcomes=True)
        assert isinstance(outcomes[0].error, ResolutionError)
        assert outcomes[0].error.kind is ResolutionKind.OTHER
        assert outcomes[0].error.__cause__ is cause
        assert outcomes[0].platform_ids == ['a', 'b']
        assert outcomes[1].ok
