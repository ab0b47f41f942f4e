import sys
import pathlib

import pytest

# Ensure backend root (containing the 'platform_loader' package) is on sys.path
BACKEND_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from platform_loader.manager import PlatformManager
from tests.platform_fakes import FakeAcquirer, FakeResolver, make_module


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def acquirer(resolver):
    return FakeAcquirer(resolver)


@pytest.fixture
def manager(resolver, acquirer, tmp_path):
    return PlatformManager(tmp_path / 'platforms.json', resolver=resolver, acquirer=acquirer)


@pytest.fixture
def scenario_config():
    return {
        'a': {'moduleName': 'modA', 'installSource': 'src'},
        'b': {'moduleName': 'modA', 'installSource': 'src'},
        'c': {'moduleName': 'modC', 'installSource': 'src2'},
    }


@pytest.fixture
def scenario_index():
    return {'modA': make_module('modA'), 'modC': make_module('modC')}
