"""
Local file data source.

Reads byte ranges of a file on disk without blocking the event loop.
"""

from pathlib import Path
from typing import Optional, Union
import logging

import aiofiles

from ufo.domain.interfaces.data_source import IDataSource

logger = logging.getLogger(__name__)


class LocalFileSource(IDataSource):
    """
    File on the local filesystem.

    The size is taken once, when the source is created; each read opens the
    file, seeks and reads (async via aiofiles), so concurrent chunk reads never
    share a file position.
    """

    def __init__(self, path: Union[str, Path], name: Optional[str] = None):
        self._path = Path(path)
        if not self._path.is_file():
            raise FileNotFoundError(f"Not a file: {self._path}")
        self._name = name or self._path.name
        self._size = self._path.stat().st_size

    @property
    def path(self) -> Path:
        return self._path

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        return self._size

    async def read(self, offset: int, length: int) -> bytes:
        async with aiofiles.open(self._path, "rb") as f:
            await f.seek(offset)
            data = await f.read(length)
        logger.debug(f"Read {len(data)} bytes at {offset} from {self._path}")
        return data

    def __repr__(self) -> str:
        return f"LocalFileSource(path={str(self._path)!r}, size={self._size})"
