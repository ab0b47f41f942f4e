from pathlib import Path
import os
import shlex
import sys

from dotenv import load_dotenv
from pydantic import BaseModel

from platform_loader import __version__

# Optionally load a config.env file so local setups can keep overrides out of
# the shell environment.
_cfg_override = os.getenv('PLATFORM_LOADER_ENV_FILE')
_candidates = []
if _cfg_override:
    _candidates.append(Path(_cfg_override))
_candidates.append(Path.cwd() / 'config.env')

for _p in _candidates:
    if _p.exists():
        load_dotenv(str(_p))
        break

"""Central configuration.

Env vars:
  PLATFORM_LOADER_CONFIG_FILE - default platform configuration file
  PLATFORM_LOADER_LOG_LEVEL   - log level name (DEBUG, INFO, ...)
  PLATFORM_LOADER_PIP         - command used to run pip
  PLATFORM_LOADER_PIP_ARGS    - extra arguments appended to `pip install`
  PLATFORM_LOADER_VERSION     - override reported version
"""


def _default_config_file() -> Path:
    # platforms.json next to the script that started the process
    main = getattr(sys.modules.get('__main__'), '__file__', None)
    base = Path(main).resolve().parent if main else Path.cwd()
    return base / 'platforms.json'


def _split_env(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return list(default)
    return shlex.split(raw)


class Settings(BaseModel):
    version: str = os.getenv('PLATFORM_LOADER_VERSION', __version__)
    config_file: Path = Path(os.getenv('PLATFORM_LOADER_CONFIG_FILE') or _default_config_file())
    log_level: str = os.getenv('PLATFORM_LOADER_LOG_LEVEL', 'INFO')
    pip_command: list[str] = _split_env('PLATFORM_LOADER_PIP', [sys.executable, '-m', 'pip'])
    pip_args: list[str] = _split_env('PLATFORM_LOADER_PIP_ARGS', [])


settings = Settings()
