from __future__ import annotations

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Callable


def read_file_sync(path: Path | str) -> str:
    return Path(path).read_text(encoding='utf-8')


async def read_file(path: Path | str) -> str:
    return await asyncio.to_thread(read_file_sync, path)


def replace_file_content_sync(path: Path | str, update: Callable[[str], str]) -> str:
    """Read `path`, pass its text through `update` and atomically write the result.

    The new content is written to a temp file in the same directory and moved
    over the original with os.replace, so readers never see a partial file.
    """
    target = Path(path)
    new_content = update(read_file_sync(target))
    fd, tmp_name = tempfile.mkstemp(prefix=f'.{target.name}.', suffix='.tmp', dir=str(target.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as fh:
            fh.write(new_content)
        os.replace(tmp_name, target)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
    return new_content


async def replace_file_content(path: Path | str, update: Callable[[str], str]) -> str:
    return await asyncio.to_thread(replace_file_content_sync, path, update)
