"""Streamed writers that upload a new file and commit it with the tracker."""

import io
import os
import shutil
from typing import Iterator, List, Optional, Union

import httpx

from common.constants import COPY_CHUNK_SIZE_BYTES
from common.logging_config import get_logger
from mogclient.exceptions import SizeMismatchError, UploadError
from mogclient.types import Destination

logger = get_logger(__name__)


class StoreFile:
    """
    Base for writers returned by FileSession.new_file.

    Used as a context manager: leaving the block normally closes and commits
    the file; leaving it through an exception discards it without a commit.
    """

    def __init__(self, session, fid: str, path: str, devid: str,
                 key: str, dests: List[Destination], expected_size: Optional[int] = None):
        self.session = session
        self.fid = fid
        self.path = path
        self.devid = devid
        self.key = key
        self.dests = dests
        self.expected_size = expected_size
        self.bigfile: Optional[Union[str, os.PathLike]] = None
        self.size: Optional[int] = None
        self.closed = False

    def write(self, data: bytes) -> int:
        raise NotImplementedError

    def _finish(self) -> int:
        raise NotImplementedError

    def discard(self) -> None:
        self.closed = True

    def _check_size(self, actual: int) -> None:
        if self.expected_size is not None and self.expected_size != actual:
            raise SizeMismatchError(self.expected_size, actual)

    def close(self) -> int:
        """
        Finish the upload and commit it with the tracker.

        Returns:
            Number of bytes stored

        Raises:
            SizeMismatchError: If an expected size was given and differs
            UploadError: If the storage node rejected the content
        """
        if self.closed:
            return self.size
        self.closed = True

        self.size = self._finish()
        self.session.commit(self.fid, self.devid, self.key, self.path, self.size)
        return self.size

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        elif not self.closed:
            self.discard()


def _read_chunks(path) -> Iterator[bytes]:
    with open(path, 'rb') as fp:
        while True:
            chunk = fp.read(COPY_CHUNK_SIZE_BYTES)
            if not chunk:
                break
            yield chunk


class HTTPFile(StoreFile):
    """Buffers written bytes and PUTs them to the destination URL on close."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._buffer = io.BytesIO()

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed file")
        return self._buffer.write(data)

    def discard(self) -> None:
        super().discard()
        self._buffer = io.BytesIO()

    def _finish(self) -> int:
        if self.bigfile is not None:
            size = os.path.getsize(self.bigfile)
            self._check_size(size)
            self._put(_read_chunks(self.bigfile), size)
        else:
            data = self._buffer.getvalue()
            size = len(data)
            self._check_size(size)
            self._put(data, size)
        return size

    def _put(self, content, size: int) -> None:
        try:
            response = self.session.http.put(
                self.path, content=content, headers={'Content-Length': str(size)}
            )
        except httpx.TransportError as e:
            logger.error(f"Upload of {self.key} to {self.path} failed: {e}")
            raise UploadError(f"PUT {self.path} failed: {e}") from e

        if not response.is_success:
            logger.error(f"Upload of {self.key} to {self.path} returned HTTP {response.status_code}")
            raise UploadError(f"PUT {self.path} returned HTTP {response.status_code}")


class NFSFile(StoreFile):
    """Writes straight to a destination on a locally mounted filesystem."""

    def __init__(self, *args, local_path: Optional[str] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.local_path = local_path or self.path
        os.makedirs(os.path.dirname(self.local_path) or '.', exist_ok=True)
        self._fp = open(self.local_path, 'wb')
        self._written = 0

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed file")
        written = self._fp.write(data)
        self._written += written
        return written

    def discard(self) -> None:
        super().discard()
        self._fp.close()
        if os.path.exists(self.local_path):
            os.remove(self.local_path)

    def _finish(self) -> int:
        self._fp.close()
        if self.bigfile is not None:
            shutil.copyfile(self.bigfile, self.local_path)
            size = os.path.getsize(self.local_path)
        else:
            size = self._written

        try:
            self._check_size(size)
        except SizeMismatchError:
            os.remove(self.local_path)
            raise
        return size
