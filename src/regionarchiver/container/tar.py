"""Sequential reader/writer over gzip'd tar streams.

Archives are read in one forward pass (``r|*``) so they can come from pipes
or sockets as well as files; nothing is seeked.
"""

from __future__ import annotations

import io
import tarfile
import time
import zlib
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Iterator, Union

from ..errors import stream_fatal

__all__ = [
    "EntryKind",
    "ArchiveEntry",
    "ArchiveReader",
    "ArchiveWriter",
    "Source",
    "open_source",
    "open_destination",
]

Source = Union[str, Path, BinaryIO]


class EntryKind(Enum):
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(slots=True)
class ArchiveEntry:
    path: str
    kind: EntryKind
    data: bytes = b""


def _normalise_name(name: str) -> str:
    while name.startswith("./"):
        name = name[2:]
    return name


class ArchiveReader:
    def __init__(self, fileobj: BinaryIO):
        self._fileobj = fileobj
        self.entries_read = 0

    def entries(self) -> Iterator[ArchiveEntry]:
        """Yield entries in stream order.

        Any container-level failure (bad compression, truncated member,
        unreadable stream) is raised as ``StreamFatalError``.
        """
        current = "NONE"
        try:
            with tarfile.open(fileobj=self._fileobj, mode="r|*") as tar:
                for member in tar:
                    current = _normalise_name(member.name)
                    if member.isdir():
                        yield ArchiveEntry(current, EntryKind.DIRECTORY)
                        continue
                    if not member.isfile():
                        continue
                    fh = tar.extractfile(member)
                    data = fh.read() if fh is not None else b""
                    self.entries_read += 1
                    yield ArchiveEntry(current, EntryKind.FILE, data)
        except (tarfile.TarError, EOFError, zlib.error, OSError) as e:
            raise stream_fatal(
                f"Error in archive file {current}: {e}",
                {"entry": current, "entries_read": self.entries_read},
            ) from e


class ArchiveWriter:
    def __init__(self, fileobj: BinaryIO, *, compress: bool = True):
        self._tar = tarfile.open(fileobj=fileobj, mode="w|gz" if compress else "w|")
        self._closed = False
        self.entries_written = 0
        self.bytes_written = 0

    def write_file(self, path: str, data: Union[bytes, str]) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        info = tarfile.TarInfo(name=path)
        info.size = len(data)
        info.mtime = int(time.time())
        info.mode = 0o644
        self._tar.addfile(info, io.BytesIO(data))
        self.entries_written += 1
        self.bytes_written += len(data)

    def write_dir(self, path: str) -> None:
        info = tarfile.TarInfo(name=path.rstrip("/"))
        info.type = tarfile.DIRTYPE
        info.mode = 0o755
        info.mtime = int(time.time())
        self._tar.addfile(info)

    def close(self) -> None:
        if not self._closed:
            self._tar.close()
            self._closed = True

    def __enter__(self) -> "ArchiveWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.close()


@contextmanager
def open_source(source: Source) -> Iterator[BinaryIO]:
    """Yield a readable binary stream; paths are opened and closed here."""
    if isinstance(source, (str, Path)):
        try:
            fh = open(source, "rb")
        except OSError as e:
            raise stream_fatal(f"Unable to open {source}: {e}") from e
        with fh:
            yield fh
    else:
        yield source


@contextmanager
def open_destination(destination: Source) -> Iterator[BinaryIO]:
    if isinstance(destination, (str, Path)):
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as fh:
            yield fh
    else:
        yield destination
