"""
In-memory data source.
"""

from typing import Optional

from ufo.domain.interfaces.data_source import IDataSource


class BytesSource(IDataSource):
    """Byte buffer held in memory."""

    def __init__(self, data: bytes, name: Optional[str] = None):
        self._data = bytes(data)
        self._name = name or "blob"

    @property
    def name(self) -> str:
        return self._name

    @property
    def size(self) -> int:
        return len(self._data)

    @property
    def data(self) -> bytes:
        return self._data

    async def read(self, offset: int, length: int) -> bytes:
        return self._data[offset:offset + length]

    def __repr__(self) -> str:
        return f"BytesSource(name={self._name!r}, size={len(self._data)})"
