from __future__ import annotations

import argparse
import asyncio
import sys
from typing import List, Optional

from platform_loader.core.config import settings
from platform_loader.core.errors import PlatformLoaderError
from platform_loader.core.logging_config import configure_logging
from platform_loader.manager import PlatformManager


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='platform-loader', description='Manage and load platform modules.')
    parser.add_argument('--config', help=f'platform configuration file (default: {settings.config_file})')
    parser.add_argument('--log-level', default=settings.log_level)
    parser.add_argument('--version', action='version', version=f'%(prog)s {settings.version}')
    sub = parser.add_subparsers(dest='command', required=True)

    sub.add_parser('list', help='list registered platform ids')

    add = sub.add_parser('add', help='register a platform')
    add.add_argument('platform_id')
    add.add_argument('module_name')
    add.add_argument('install_source')

    remove = sub.add_parser('remove', help='unregister a platform')
    remove.add_argument('platform_id')

    load = sub.add_parser('load', help='load platforms, installing missing modules')
    load.add_argument('platform_ids', nargs='*', help='ids to load (default: all registered)')
    return parser


async def _load(manager: PlatformManager, platform_ids: List[str]) -> int:
    manager.enable_platforms()
    outcomes = await manager.load_platforms(platform_ids or manager.registered_platforms(), return_outcomes=True)
    status = 0
    for outcome in outcomes:
        ids = ', '.join(outcome.platform_ids)
        if outcome.ok:
            print(f"[loaded] {outcome.module_name}: {ids}", flush=True)
        else:
            status = 1
            print(f"[failed] {outcome.module_name or '-'}: {ids}: {outcome.error}", flush=True)
    return status


async def _run(args: argparse.Namespace) -> int:
    manager = PlatformManager(args.config)
    if args.command == 'list':
        for platform_id in await manager.list_platforms():
            print(platform_id)
        return 0
    if args.command == 'add':
        await manager.add_platform(args.platform_id, args.module_name, args.install_source)
        return 0
    if args.command == 'remove':
        await manager.remove_platform(args.platform_id)
        return 0
    return await _load(manager, args.platform_ids)


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level)
    try:
        return asyncio.run(_run(args))
    except PlatformLoaderError as exc:
        print(f"[platform-loader] {exc}", file=sys.stderr, flush=True)
        return 2


if __name__ == '__main__':  # pragma: no cover
    sys.exit(main())
