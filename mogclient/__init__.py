"""Client library for the MogileFS distributed file store."""

from mogclient.backend import TrackerBackend
from mogclient.client import MogileFS
from mogclient.config import Config
from mogclient.exceptions import (
    BackendError,
    DomainNotFoundError,
    EmptyPathError,
    MogileFSError,
    ReadOnlyError,
    SizeMismatchError,
    UnreachableBackendError,
)
from mogclient.metadata_cache import DirectMetadataStore, MetadataCache
from mogclient.types import BufferSource, PathSource, StreamSource

__all__ = [
    'BackendError',
    'BufferSource',
    'Config',
    'DirectMetadataStore',
    'DomainNotFoundError',
    'EmptyPathError',
    'MetadataCache',
    'MogileFS',
    'MogileFSError',
    'PathSource',
    'ReadOnlyError',
    'SizeMismatchError',
    'StreamSource',
    'TrackerBackend',
    'UnreachableBackendError',
]
