"""Shared data type definitions (Device, MetadataSnapshot, write sources, attempt results)."""

from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import BinaryIO, Generic, List, Mapping, Optional, TypeVar, Union

T = TypeVar('T')


@dataclass(frozen=True)
class Device:
    """
    A storage device as seen through the direct metadata tables.
    """
    devid: int
    hostip: str
    altip: str
    http_port: int
    http_get_port: int
    readable: bool

    def host_for(self, zone: Optional[str], alt_zone: str) -> str:
        if zone == alt_zone and self.altip:
            return self.altip
        return self.hostip

    def get_port(self) -> int:
        return self.http_get_port or self.http_port


def _frozen(mapping: Optional[Mapping] = None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class MetadataSnapshot:
    """
    Immutable view of the device and domain tables at one refresh.

    A refresh builds a new snapshot; existing ones are never mutated.
    """
    devices: Mapping[int, Device] = field(default_factory=_frozen)
    domains: Mapping[str, int] = field(default_factory=_frozen)

    @classmethod
    def build(cls, devices: Optional[Mapping[int, Device]] = None,
              domains: Optional[Mapping[str, int]] = None) -> 'MetadataSnapshot':
        return cls(devices=_frozen(devices), domains=_frozen(domains))


@dataclass(frozen=True)
class KeyPage:
    """One page of a key listing plus the cursor for the next call."""
    keys: List[str]
    next_after: Optional[str]


@dataclass(frozen=True)
class Hit(Generic[T]):
    """A candidate that produced a value; iteration stops here."""
    candidate: str
    value: T


@dataclass(frozen=True)
class Skip:
    """A candidate that failed transiently; iteration moves on."""
    candidate: str
    reason: str


Attempt = Union[Hit, Skip]


@dataclass(frozen=True)
class BufferSource:
    """In-memory content to store."""
    data: bytes


@dataclass(frozen=True)
class PathSource:
    """A local file whose content is stored."""
    path: Union[str, Path]


@dataclass(frozen=True)
class StreamSource:
    """A binary stream read until EOF."""
    stream: BinaryIO


FileSource = Union[BufferSource, PathSource, StreamSource]


def is_http_url(path: Optional[str]) -> bool:
    return bool(path) and path.startswith('http://')


@dataclass(frozen=True)
class Destination:
    """One negotiated write destination from create_open."""
    devid: Optional[str]
    path: Optional[str]
