"""JSON configuration store for platform entries.

File layout::

    {
        "android": {"moduleName": "pl_cordova", "installSource": ">=1.0"},
        "ios":     {"moduleName": "pl_cordova", "installSource": ">=1.0"}
    }

Older files using ``packageName`` / ``source`` keys are read as well.

Reading only checks the shape: an object whose values are objects. A missing
or empty module name or source is kept as an empty string and fails that
platform alone when it is loaded.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from platform_loader.core.config import settings
from platform_loader.core.errors import ConfigMissing, InvalidArgument
from platform_loader.utils.file_tools import read_file, read_file_sync, replace_file_content

_log = logging.getLogger(__name__)


class PlatformSpec(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    module_name: str = Field(
        default='',
        validation_alias=AliasChoices('moduleName', 'packageName', 'module_name'),
        serialization_alias='moduleName',
    )
    install_source: str = Field(
        default='',
        validation_alias=AliasChoices('installSource', 'source', 'install_source'),
        serialization_alias='installSource',
    )

    @property
    def complete(self) -> bool:
        return bool(self.module_name and self.install_source)


_CONFIG_ADAPTER = TypeAdapter(Dict[str, PlatformSpec])


def default_config_path() -> Path:
    return Path(settings.config_file)


def _resolve_path(config_path: Path | str | None) -> Path:
    return Path(config_path) if config_path else default_config_path()


def parse_config(config: Mapping[str, Any]) -> Dict[str, PlatformSpec]:
    """Validate the shape of an in-memory configuration mapping."""
    if not isinstance(config, Mapping):
        raise InvalidArgument(f'Platform configuration must be a mapping, got {type(config).__name__}.')
    try:
        return _CONFIG_ADAPTER.validate_python(dict(config))
    except ValidationError as exc:
        raise InvalidArgument(f'Platform configuration is invalid: {exc}') from exc


def _parse_text(text: str, path: Path) -> Dict[str, PlatformSpec]:
    try:
        return _CONFIG_ADAPTER.validate_json(text)
    except ValidationError as exc:
        raise ConfigMissing(path) from exc


def read_config(config_path: Path | str | None = None) -> Dict[str, PlatformSpec]:
    path = _resolve_path(config_path)
    try:
        text = read_file_sync(path)
    except OSError as exc:
        raise ConfigMissing(path) from exc
    return _parse_text(text, path)


def _dump(platforms: Mapping[str, PlatformSpec]) -> str:
    data = {key: spec.model_dump(by_alias=True) for key, spec in platforms.items()}
    return json.dumps(data, indent=4)


async def _update_config(config_path: Path | str | None, mutate) -> None:
    path = _resolve_path(config_path)

    def _apply(text: str) -> str:
        platforms = dict(_parse_text(text, path))
        mutate(platforms)
        return _dump(platforms)

    try:
        await replace_file_content(path, _apply)
    except OSError as exc:
        raise ConfigMissing(path) from exc


async def add_platform(
    platform_id: str,
    module_name: str,
    install_source: str,
    config_path: Path | str | None = None,
) -> None:
    if not platform_id:
        raise InvalidArgument('Platform id is missing or invalid.')
    try:
        spec = PlatformSpec(module_name=module_name, install_source=install_source)
    except ValidationError as exc:
        raise InvalidArgument(f"Invalid entry for platform '{platform_id}': {exc}") from exc
    # entries written here must be loadable
    if not spec.complete:
        raise InvalidArgument(f"Platform '{platform_id}' needs both a module name and an install source.")

    path = _resolve_path(config_path)
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text('{}', encoding='utf-8')
        _log.info("created platform configuration file %s", path)

    def _add(platforms: Dict[str, PlatformSpec]) -> None:
        platforms[platform_id] = spec

    await _update_config(path, _add)
    _log.info("registered platform=%s module=%s source=%s", platform_id, module_name, install_source)


async def remove_platform(platform_id: str, config_path: Path | str | None = None) -> None:
    def _remove(platforms: Dict[str, PlatformSpec]) -> None:
        platforms.pop(platform_id, None)

    await _update_config(config_path, _remove)
    _log.info("removed platform=%s", platform_id)


async def list_platforms(config_path: Path | str | None = None) -> List[str]:
    path = _resolve_path(config_path)
    try:
        text = await read_file(path)
    except OSError as exc:
        raise ConfigMissing(path) from exc
    return list(_parse_text(text, path))


def list_platforms_sync(config_path: Path | str | None = None) -> List[str]:
    return list(read_config(config_path))
