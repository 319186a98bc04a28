"""Sequential fallback reads and size probes across replica candidates."""

import os
import re
from typing import Callable, Iterable, Iterator, Optional, TypeVar

import httpx

from common.constants import COPY_CHUNK_SIZE_BYTES, REPLICA_TIMEOUT_SECONDS
from common.logging_config import get_logger
from mogclient.exceptions import RequestTruncatedError
from mogclient.types import Attempt, Hit, Skip, is_http_url

logger = get_logger(__name__)

CONTENT_LENGTH_RE = re.compile(r'^\s*(\d+)\s*$')

T = TypeVar('T')


class ReplicaStream:
    """Live body of the replica that won a read."""

    def __init__(self, source: str, chunks: Iterator[bytes], close: Callable[[], None]):
        self.source = source
        self._chunks = chunks
        self._close = close

    def __iter__(self) -> Iterator[bytes]:
        try:
            yield from self._chunks
        except httpx.TransportError as e:
            raise RequestTruncatedError(f"Body from {self.source} ended early: {e}") from e

    def read(self) -> bytes:
        return b"".join(self)

    def close(self) -> None:
        self._close()

    def __enter__(self) -> 'ReplicaStream':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ReplicatedReader:
    """
    Consumes replica candidates strictly in order, one at a time.

    Each candidate attempt yields either a Hit, which ends the walk, or a
    Skip for transient faults (timeouts, refused connections, missing files).
    A candidate is never tried twice.
    """

    def __init__(self, timeout: float = REPLICA_TIMEOUT_SECONDS):
        """
        Args:
            timeout: Per-attempt bound on connecting and receiving headers, in seconds
        """
        self.timeout = timeout
        self.session = httpx.Client(timeout=timeout)

    def close(self) -> None:
        self.session.close()

    def first(self, candidates: Iterable[Optional[str]],
              attempt: Callable[[str], Attempt]) -> Optional[Hit]:
        """
        Try candidates in order until one produces a Hit.

        Args:
            candidates: Ordered replica URLs or filesystem paths
            attempt: Callable producing a Hit or Skip for one candidate

        Returns:
            The first Hit, or None when every candidate was skipped
        """
        for candidate in candidates:
            if not candidate:
                continue
            result = attempt(candidate)
            if isinstance(result, Hit):
                logger.debug(f"Replica {candidate} answered")
                return result
            logger.warning(f"Skipping replica {candidate}: {result.reason}")
        return None

    def read(self, candidates: Iterable[Optional[str]],
             consumer: Optional[Callable[[Iterator[bytes]], T]] = None):
        """
        Read content from the first candidate that answers.

        Args:
            candidates: Ordered replica URLs or filesystem paths
            consumer: Optional callable given an iterator over the body

        Returns:
            The body as bytes, the consumer's result, or None when no candidate answered
        """
        hit = self.first(candidates, self.open)
        if hit is None:
            return None

        with hit.value as stream:
            if consumer is None:
                return stream.read()
            return consumer(iter(stream))

    def size(self, candidates: Iterable[Optional[str]]) -> Optional[int]:
        """
        Probe candidates in order for the content length.

        Args:
            candidates: Ordered replica URLs or filesystem paths

        Returns:
            Length from the first candidate that reports one, or None
        """
        hit = self.first(candidates, self.probe)
        return hit.value if hit else None

    def open(self, candidate: str) -> Attempt:
        if is_http_url(candidate):
            return self._open_http(candidate)
        return self._open_file(candidate)

    def probe(self, candidate: str) -> Attempt:
        if is_http_url(candidate):
            return self._probe_http(candidate)
        if not os.path.exists(candidate):
            return Skip(candidate, "missing")
        return Hit(candidate, os.path.getsize(candidate))

    def _open_http(self, url: str) -> Attempt:
        request = self.session.build_request('GET', url)
        try:
            response = self.session.send(request, stream=True)
        except httpx.TransportError as e:
            return Skip(url, f"{type(e).__name__}: {e}")

        if response.status_code != 200:
            response.close()
            return Skip(url, f"HTTP {response.status_code}")

        return Hit(url, ReplicaStream(url, response.iter_bytes(), response.close))

    def _open_file(self, path: str) -> Attempt:
        try:
            fp = open(path, 'rb')
        except (FileNotFoundError, NotADirectoryError):
            return Skip(path, "missing")

        chunks = iter(lambda: fp.read(COPY_CHUNK_SIZE_BYTES), b'')
        return Hit(path, ReplicaStream(path, chunks, fp.close))

    def _probe_http(self, url: str) -> Attempt:
        try:
            response = self.session.head(url)
        except httpx.TransportError as e:
            return Skip(url, f"{type(e).__name__}: {e}")

        if response.status_code != 200:
            return Skip(url, f"HTTP {response.status_code}")

        match = CONTENT_LENGTH_RE.match(response.headers.get('content-length', ''))
        if match is None:
            return Skip(url, "no Content-Length")
        return Hit(url, int(match.group(1)))
