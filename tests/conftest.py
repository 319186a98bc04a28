"""Shared pytest fixtures for all tests."""

import sqlite3
from typing import Dict, List, Tuple

import httpx
import pytest

from mogclient.client import MogileFS
from mogclient.config import Config
from mogclient.metadata_cache import MetadataCache


class FakeBackend:
    """
    In-memory tracker that records every request.

    `responses` maps a command to a field map, an exception, or a list of
    those consumed one per call.
    """

    def __init__(self, responses=None):
        self.calls: List[Tuple[str, dict]] = []
        self.responses: Dict[str, object] = dict(responses or {})

    def _respond(self, command: str, **args):
        self.calls.append((command, args))
        response = self.responses.get(command, {})
        if isinstance(response, list):
            response = response.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def commands(self) -> List[str]:
        return [command for command, _ in self.calls]

    def get_paths(self, **args):
        return self._respond('get_paths', **args)

    def create_open(self, **args):
        return self._respond('create_open', **args)

    def create_close(self, **args):
        return self._respond('create_close', **args)

    def delete(self, **args):
        return self._respond('delete', **args)

    def rename(self, **args):
        return self._respond('rename', **args)

    def sleep(self, **args):
        return self._respond('sleep', **args)

    def list_keys(self, **args):
        return self._respond('list_keys', **args)


class ReplicaCluster:
    """Storage nodes served from a dict of URL -> content through httpx.MockTransport."""

    def __init__(self):
        self.content: Dict[str, bytes] = {}
        self.down: set = set()
        self.requests: List[Tuple[str, str]] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append((request.method, url))

        if url in self.down:
            raise httpx.ConnectError("Connection refused", request=request)

        if request.method == 'PUT':
            self.content[url] = request.content
            return httpx.Response(201)

        if url not in self.content:
            return httpx.Response(404)

        body = self.content[url]
        if request.method == 'HEAD':
            return httpx.Response(200, headers={'Content-Length': str(len(body))})
        return httpx.Response(200, content=body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def urls_requested(self, method: str = 'GET') -> List[str]:
        return [url for m, url in self.requests if m == method]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def cluster():
    return ReplicaCluster()


@pytest.fixture
def mogile(backend, cluster):
    """MogileFS client for domain 'test' wired to the fake tracker and replicas."""
    client = MogileFS('test', backend)
    client.reader.session = cluster.client()
    client.files.http = cluster.client()
    return client


@pytest.fixture
def temp_config_dir(tmp_path):
    config_dir = tmp_path / '.mogclient'
    config_dir.mkdir()
    return config_dir


@pytest.fixture
def temp_config(temp_config_dir):
    return Config(temp_config_dir / 'config.json')


TRACKER_SCHEMA = """
    CREATE TABLE host (
        hostid INTEGER PRIMARY KEY,
        status TEXT,
        http_port INTEGER,
        http_get_port INTEGER,
        hostname TEXT,
        hostip TEXT,
        altip TEXT
    );
    CREATE TABLE device (
        devid INTEGER PRIMARY KEY,
        hostid INTEGER NOT NULL,
        status TEXT
    );
    CREATE TABLE domain (
        dmid INTEGER PRIMARY KEY,
        namespace TEXT UNIQUE
    );
    CREATE TABLE file (
        fid INTEGER PRIMARY KEY,
        dmid INTEGER NOT NULL,
        dkey TEXT,
        length INTEGER,
        classid INTEGER,
        devcount INTEGER,
        UNIQUE(dmid, dkey)
    );
    CREATE TABLE file_on (
        fid INTEGER NOT NULL,
        devid INTEGER NOT NULL,
        PRIMARY KEY(fid, devid)
    );
"""

HOSTS = [
    (1, 'alive', 7500, 7600, 'store1', '10.0.0.1', '192.168.0.1'),
    (2, 'alive', 7500, 7600, 'store2', '10.0.0.2', '192.168.0.2'),
    (3, 'alive', 7500, None, 'store3', '10.0.0.3', None),
    (4, 'alive', 7500, None, 'store4', '10.0.0.4', None),
    (5, 'down', 7500, None, 'store5', '10.0.0.5', None),
    (6, 'alive', 7500, None, 'store6', '10.0.0.6', None),
    (7, 'alive', 7500, None, 'store7', None, None),
]

DEVICES = [
    (1, 1, 'alive'),
    (2, 2, 'alive'),
    (3, 3, 'readonly'),
    (4, 4, 'alive'),
    (5, 5, 'alive'),
    (6, 6, 'dead'),
    (7, 7, 'alive'),
]

DOMAINS = [(1, 'test'), (2, 'foo')]

FILES = [
    (12, 1, 'fookey', 123, 1, 2),
    (13, 1, 'badhost', 10, 1, 2),
    (14, 1, 'baddev', 10, 1, 2),
    (15, 1, 'bar', 456, 1, 1),
    (16, 1, 'foo', 123, 1, 2),
    (17, 2, 'fookey', 99, 1, 1),
]

FILE_ON = [
    (12, 1), (12, 3),
    (13, 1), (13, 5),
    (14, 1), (14, 6),
    (15, 2),
    (16, 1), (16, 2),
    (17, 4),
]


@pytest.fixture
def tracker_db():
    """In-memory tracker database with six devices, two domains and a few files."""
    conn = sqlite3.connect(':memory:')
    conn.executescript(TRACKER_SCHEMA)
    conn.executemany("INSERT INTO host VALUES (?, ?, ?, ?, ?, ?, ?)", HOSTS)
    conn.executemany("INSERT INTO device VALUES (?, ?, ?)", DEVICES)
    conn.executemany("INSERT INTO domain VALUES (?, ?)", DOMAINS)
    conn.executemany("INSERT INTO file VALUES (?, ?, ?, ?, ?, ?)", FILES)
    conn.executemany("INSERT INTO file_on VALUES (?, ?)", FILE_ON)
    conn.commit()
    yield conn
    conn.close()


@pytest.fixture
def metadata_cache(tracker_db):
    cache = MetadataCache(tracker_db)
    cache.refresh_device()
    cache.refresh_domain()
    return cache
