"""
Data Sources - IDataSource implementations.

Provides:
- BytesSource: in-memory buffer
- LocalFileSource: file on disk (aiofiles)
- as_data_source: coerce bytes / paths into a data source
"""

from pathlib import Path
from typing import Any, Optional

from ufo.domain.interfaces.data_source import IDataSource
from .bytes_source import BytesSource
from .local_file_source import LocalFileSource


def as_data_source(obj: Any, name: Optional[str] = None) -> IDataSource:
    """
    Coerce a raw source into an IDataSource.

    Accepts an IDataSource (returned unchanged), bytes-like objects, and
    str/Path pointing at a local file.

    Raises:
        TypeError: If the object cannot be used as a source
        FileNotFoundError: If a path does not point at a file
    """
    if isinstance(obj, IDataSource):
        return obj
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return BytesSource(bytes(obj), name=name)
    if isinstance(obj, (str, Path)):
        return LocalFileSource(obj, name=name)
    raise TypeError(f"Unsupported upload source: {type(obj).__name__}")


__all__ = [
    "BytesSource",
    "LocalFileSource",
    "as_data_source",
]
