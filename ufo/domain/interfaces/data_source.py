from abc import ABC, abstractmethod


class IDataSource(ABC):
    """
    Readable byte source behind an UploadFile.

    Implementations:
    - BytesSource: in-memory buffer
    - LocalFileSource: file on disk, read with aiofiles
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Display name (usually the file name)."""
        pass

    @property
    @abstractmethod
    def size(self) -> int:
        """Total size in bytes."""
        pass

    @abstractmethod
    async def read(self, offset: int, length: int) -> bytes:
        """
        Read `length` bytes starting at `offset`.

        Returns fewer bytes only at the end of the source.
        """
        pass
