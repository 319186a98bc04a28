"""Write path: destination negotiation, uploads and key mutations."""

import os
from typing import BinaryIO, Dict, List, Optional

import httpx

from common.constants import (
    BIGFILE_THRESHOLD_BYTES,
    COPY_CHUNK_SIZE_BYTES,
    REPLICA_TIMEOUT_SECONDS,
)
from common.logging_config import get_logger
from mogclient.exceptions import EmptyPathError, ReadOnlyError, UnsupportedPathError
from mogclient.files import HTTPFile, NFSFile, StoreFile
from mogclient.types import (
    BufferSource,
    Destination,
    FileSource,
    PathSource,
    StreamSource,
    is_http_url,
)

logger = get_logger(__name__)


def parse_destinations(res: Dict[str, str]) -> List[Destination]:
    """
    Read the destinations from a create_open reply.

    Handles both the multi-destination shape (dev_count, devid_N, path_N)
    and the single-destination shape (devid, path).

    Args:
        res: Field map from the tracker

    Returns:
        Destinations in tracker order; the first one is the primary
    """
    if 'dev_count' in res:
        count = int(res['dev_count'] or 0)
        return [
            Destination(devid=res.get(f"devid_{i}"), path=res.get(f"path_{i}"))
            for i in range(1, count + 1)
        ]
    return [Destination(devid=res.get('devid'), path=res.get('path'))]


def copy_stream(src: BinaryIO, dst: StoreFile) -> int:
    """
    Copy a binary stream into a writer until EOF.

    Returns:
        Number of bytes copied
    """
    total = 0
    while True:
        chunk = src.read(COPY_CHUNK_SIZE_BYTES)
        if not chunk:
            return total
        dst.write(chunk)
        total += len(chunk)


class FileSession:
    """
    Creates, stores, renames and deletes keys of one domain.

    Every mutating call checks the read-only flag before talking to the tracker.
    Only the primary negotiated destination is written; the others are kept on
    the writer as `dests`.
    """

    def __init__(self, backend, domain: str, readonly: bool = False,
                 root: Optional[str] = None, timeout: float = REPLICA_TIMEOUT_SECONDS):
        self.backend = backend
        self.domain = domain
        self.readonly = readonly
        self.root = root
        self.http = httpx.Client(timeout=timeout)

    def close(self) -> None:
        self.http.close()

    def _check_writable(self) -> None:
        if self.readonly:
            raise ReadOnlyError()

    def _local_path(self, path: str) -> str:
        if self.root is None:
            return path
        return os.path.join(self.root, path.lstrip('/'))

    def new_file(self, key: str, klass: Optional[str] = None,
                 size_hint: Optional[int] = None) -> StoreFile:
        """
        Open a new file for writing.

        Args:
            key: Key to create
            klass: Replication class name, or None for the domain default
            size_hint: Expected length; checked against the written length on close

        Returns:
            HTTPFile or NFSFile for the primary destination

        Raises:
            ReadOnlyError: If the client is read-only
            EmptyPathError: If the tracker gave no primary path
            UnsupportedPathError: If the primary path has an unknown scheme
        """
        self._check_writable()

        res = self.backend.create_open(domain=self.domain, klass=klass, key=key, multi_dest=1)
        dests = parse_destinations(res)
        if not dests or not dests[0].path:
            raise EmptyPathError()

        primary = dests[0]
        fid = res.get('fid')
        logger.debug(f"Opened {key} [fid={fid}, devid={primary.devid}, dests={len(dests)}]")

        if is_http_url(primary.path):
            return HTTPFile(self, fid, primary.path, primary.devid, key, dests, size_hint)
        if '://' in primary.path:
            raise UnsupportedPathError(primary.path)
        return NFSFile(self, fid, primary.path, primary.devid, key, dests,
                       size_hint, local_path=self._local_path(primary.path))

    def commit(self, fid: str, devid: str, key: str, path: str, size: int) -> None:
        self.backend.create_close(fid=fid, devid=devid, domain=self.domain,
                                  key=key, path=path, size=size)
        logger.info(f"Stored {key} [fid={fid}, devid={devid}, size={size}]")

    def store_file(self, key: str, klass: Optional[str], source: FileSource) -> int:
        """
        Store the content of a buffer, a local file or a stream.

        Local files larger than BIGFILE_THRESHOLD_BYTES are handed to the
        writer whole; smaller ones are copied in chunks.

        Args:
            key: Key to create
            klass: Replication class name
            source: BufferSource, PathSource or StreamSource

        Returns:
            Number of bytes stored
        """
        self._check_writable()

        if isinstance(source, BufferSource):
            return self.store_content(key, klass, source.data)

        if isinstance(source, StreamSource):
            with self.new_file(key, klass) as mfp:
                return copy_stream(source.stream, mfp)

        if isinstance(source, PathSource):
            with self.new_file(key, klass) as mfp:
                if os.path.getsize(source.path) > BIGFILE_THRESHOLD_BYTES:
                    mfp.bigfile = source.path
                    return mfp.close()
                with open(source.path, 'rb') as fp:
                    return copy_stream(fp, mfp)

        raise TypeError(f"Unsupported file source: {type(source).__name__}")

    def store_content(self, key: str, klass: Optional[str], content: bytes) -> int:
        self._check_writable()

        with self.new_file(key, klass) as mfp:
            mfp.write(content)

        return len(content)

    def delete(self, key: str) -> None:
        self._check_writable()
        self.backend.delete(domain=self.domain, key=key)

    def rename(self, from_key: str, to_key: str) -> None:
        self._check_writable()
        self.backend.rename(domain=self.domain, from_key=from_key, to_key=to_key)

    def sleep(self, duration: float) -> Dict[str, str]:
        return self.backend.sleep(duration=duration)
