"""Tracker client speaking the MogileFS line protocol over TCP."""

import socket
import time
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, unquote_plus, urlencode

from common.constants import (
    DEAD_HOST_RETRY_SECONDS,
    DEFAULT_TRACKER_PORT,
    LIST_KEYS_LIMIT,
    TRACKER_TIMEOUT_SECONDS,
)
from common.logging_config import get_logger
from mogclient.exceptions import (
    InvalidResponseError,
    RequestTruncatedError,
    UnreachableBackendError,
    backend_error,
)

logger = get_logger(__name__)


def encode_request(command: str, args: Dict[str, object]) -> bytes:
    """
    Encode one tracker request line.

    Args:
        command: Tracker command name (e.g., 'get_paths')
        args: Request arguments; None values are sent as empty strings

    Returns:
        Request line terminated by CRLF
    """
    params = {k: '' if v is None else v for k, v in args.items()}
    return f"{command} {urlencode(params)}\r\n".encode('utf-8')


def parse_response(line: bytes) -> Dict[str, str]:
    """
    Decode one tracker reply line.

    Args:
        line: Raw reply including the trailing CRLF

    Returns:
        Field map from an OK reply

    Raises:
        BackendError: For ERR replies, typed by error code
        InvalidResponseError: For anything else
    """
    text = line.decode('utf-8').rstrip('\r\n')

    if text == 'OK' or text.startswith('OK '):
        return dict(parse_qsl(text[3:], keep_blank_values=True))

    if text.startswith('ERR '):
        parts = text.split(' ', 2)
        code = parts[1]
        message = unquote_plus(parts[2]) if len(parts) > 2 else None
        raise backend_error(code, message)

    raise InvalidResponseError(f"Invalid tracker response: {text!r}")


def parse_host(host: str) -> Tuple[str, int]:
    name, _, port = host.rpartition(':')
    if not name:
        return port, DEFAULT_TRACKER_PORT
    return name, int(port)


class TrackerBackend:
    """
    Connection to one of several trackers.

    Hosts are tried in order; a host that refuses a connection is skipped for
    DEAD_HOST_RETRY_SECONDS before being tried again.
    """

    def __init__(self, hosts: List[str], timeout: float = TRACKER_TIMEOUT_SECONDS):
        if not hosts:
            raise ValueError("at least one tracker host is required")
        self.hosts = [parse_host(h) for h in hosts]
        self.timeout = timeout
        self._socket: Optional[socket.socket] = None
        self._reader = None
        self._active: Optional[str] = None
        self._dead: Dict[str, float] = {}

    def _connect(self) -> socket.socket:
        if self._socket is not None:
            return self._socket

        now = time.monotonic()
        for host, port in self.hosts:
            address = f"{host}:{port}"
            dead_since = self._dead.get(address)
            if dead_since is not None and now - dead_since < DEAD_HOST_RETRY_SECONDS:
                continue

            try:
                sock = socket.create_connection((host, port), timeout=self.timeout)
            except OSError as e:
                logger.warning(f"Tracker {address} unreachable: {e}")
                self._dead[address] = now
                continue

            self._dead.pop(address, None)
            self._socket = sock
            self._reader = sock.makefile('rb')
            self._active = address
            logger.debug(f"Connected to tracker {address}")
            return sock

        raise UnreachableBackendError()

    def close(self) -> None:
        """Close the current tracker connection, if any."""
        if self._reader is not None:
            self._reader.close()
        if self._socket is not None:
            self._socket.close()
        self._socket = None
        self._reader = None
        self._active = None

    def do_request(self, command: str, args: Dict[str, object]) -> Dict[str, str]:
        """
        Send one request and wait for its reply.

        Args:
            command: Tracker command name
            args: Request arguments

        Returns:
            Field map of the OK reply

        Raises:
            UnreachableBackendError: If no tracker accepts a connection
            RequestTruncatedError: If the connection fails mid-request
            BackendError: If the tracker answers with ERR
        """
        request = encode_request(command, args)
        sock = self._connect()
        address = self._active

        logger.debug(f"Tracker request: {command} [tracker={address}]")
        try:
            sock.sendall(request)
            line = self._reader.readline()
        except OSError as e:
            self.close()
            raise RequestTruncatedError(f"{command} to {address} failed: {e}") from e

        if not line.endswith(b'\n'):
            self.close()
            raise RequestTruncatedError(f"{command} to {address}: reply truncated")

        return parse_response(line)

    def get_paths(self, domain: str, key: str, noverify: int = 1,
                  zone: Optional[str] = None) -> Dict[str, str]:
        return self.do_request('get_paths', {
            'domain': domain, 'key': key, 'noverify': noverify, 'zone': zone,
        })

    def create_open(self, domain: str, klass: Optional[str], key: str,
                    multi_dest: int = 1) -> Dict[str, str]:
        return self.do_request('create_open', {
            'domain': domain, 'class': klass, 'key': key, 'multi_dest': multi_dest,
        })

    def create_close(self, fid: str, devid: str, domain: str, key: str,
                     path: str, size: int) -> Dict[str, str]:
        return self.do_request('create_close', {
            'fid': fid, 'devid': devid, 'domain': domain,
            'key': key, 'path': path, 'size': size,
        })

    def delete(self, domain: str, key: str) -> Dict[str, str]:
        return self.do_request('delete', {'domain': domain, 'key': key})

    def rename(self, domain: str, from_key: str, to_key: str) -> Dict[str, str]:
        return self.do_request('rename', {
            'domain': domain, 'from_key': from_key, 'to_key': to_key,
        })

    def sleep(self, duration: float) -> Dict[str, str]:
        return self.do_request('sleep', {'duration': duration})

    def list_keys(self, domain: str, prefix: str, after: Optional[str] = None,
                  limit: int = LIST_KEYS_LIMIT) -> Dict[str, str]:
        return self.do_request('list_keys', {
            'domain': domain, 'prefix': prefix, 'after': after, 'limit': limit,
        })
