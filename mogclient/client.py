"""High-level MogileFS client for one domain."""

from typing import Callable, Dict, Iterable, Iterator, List, Optional

from common.constants import LIST_KEYS_LIMIT, REPLICA_TIMEOUT_SECONDS
from common.logging_config import get_logger
from mogclient.backend import TrackerBackend
from mogclient.config import Config
from mogclient.files import StoreFile
from mogclient.keys import KeyEnumerator
from mogclient.paths import PathResolver
from mogclient.reader import ReplicatedReader
from mogclient.session import FileSession
from mogclient.types import FileSource, KeyPage

logger = get_logger(__name__)


class MogileFS:
    """
    File access for one domain: fallback reads, negotiated writes and key listing.

    Reads resolve candidates fresh on every call and try them in order.
    Passing a DirectMetadataStore as `direct` resolves paths and lists keys
    from the tracker database instead of the tracker.
    """

    def __init__(
        self,
        domain: str,
        backend,
        root: Optional[str] = None,
        readonly: bool = False,
        timeout: float = REPLICA_TIMEOUT_SECONDS,
        direct=None,
    ):
        """
        Initialize the client.

        Args:
            domain: Domain of the keys handled by this client
            backend: Tracker client (TrackerBackend or compatible)
            root: NFS mount point for trackers handing out filesystem paths
            readonly: Refuse every mutating call
            timeout: Per-attempt replica timeout in seconds
            direct: Optional DirectMetadataStore for the database fast path
        """
        if not domain:
            raise ValueError("you must specify a domain")

        self.domain = domain
        self.backend = backend
        self.resolver = PathResolver(backend, domain, root=root, direct=direct)
        self.reader = ReplicatedReader(timeout)
        self.files = FileSession(backend, domain, readonly=readonly, root=root, timeout=timeout)
        self.keys = KeyEnumerator(backend, domain, direct=direct)
        logger.info(f"Initialized MogileFS client [domain={domain}, readonly={readonly}]")

    @classmethod
    def from_config(cls, config: Config, backend=None, direct=None) -> 'MogileFS':
        """
        Build a client from a Config.

        Args:
            config: Configuration instance
            backend: Tracker client; a TrackerBackend for the configured hosts if None
            direct: Optional DirectMetadataStore

        Returns:
            MogileFS instance
        """
        if backend is None:
            backend = TrackerBackend(config.get_hosts(), timeout=config.get_tracker_timeout())
        return cls(
            config.get_domain(),
            backend,
            root=config.get_root(),
            readonly=config.is_readonly(),
            timeout=config.get_timeout(),
            direct=direct,
        )

    @property
    def readonly(self) -> bool:
        return self.files.readonly

    @property
    def get_file_data_timeout(self) -> float:
        return self.reader.timeout

    def close(self) -> None:
        self.reader.close()
        self.files.close()
        if hasattr(self.backend, 'close'):
            self.backend.close()

    def __enter__(self) -> 'MogileFS':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def get_paths(self, key: str, noverify: bool = True, zone: Optional[str] = None) -> List[str]:
        return self.resolver.get_paths(key, noverify=noverify, zone=zone)

    def get_file_data(self, key: str, consumer: Optional[Callable[[Iterator[bytes]], object]] = None):
        """
        Read the content of a key from the first replica that answers.

        Args:
            key: Key to read
            consumer: Optional callable given an iterator over the body

        Returns:
            Content bytes (or the consumer's result), None if no replica answered
        """
        return self.reader.read(self.get_paths(key), consumer)

    def size(self, key: str) -> Optional[int]:
        """
        Get the length of a key from the first replica that reports it.

        Returns:
            Length in bytes, or None if no replica answered
        """
        return self.paths_size(self.get_paths(key))

    def paths_size(self, paths: Iterable[Optional[str]]) -> Optional[int]:
        return self.reader.size(paths)

    def new_file(self, key: str, klass: Optional[str] = None,
                 size_hint: Optional[int] = None) -> StoreFile:
        return self.files.new_file(key, klass, size_hint)

    def store_file(self, key: str, klass: Optional[str], source: FileSource) -> int:
        return self.files.store_file(key, klass, source)

    def store_content(self, key: str, klass: Optional[str], content: bytes) -> int:
        return self.files.store_content(key, klass, content)

    def delete(self, key: str) -> None:
        self.files.delete(key)

    def rename(self, from_key: str, to_key: str) -> None:
        self.files.rename(from_key, to_key)

    def sleep(self, duration: float) -> Dict[str, str]:
        return self.files.sleep(duration)

    def list_keys(self, prefix: str, after: Optional[str] = None,
                  limit: int = LIST_KEYS_LIMIT) -> Optional[KeyPage]:
        return self.keys.list_keys(prefix, after, limit)

    def each_key(self, prefix: str) -> Iterator[str]:
        return self.keys.each_key(prefix)
