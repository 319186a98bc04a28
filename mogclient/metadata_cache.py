"""Direct read access to the tracker database with a cached device/domain snapshot."""

import threading
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from common.constants import DEFAULT_HTTP_PORT, LIST_KEYS_LIMIT
from common.logging_config import get_logger
from mogclient.exceptions import DomainNotFoundError
from mogclient.paths import device_urls
from mogclient.types import Device, KeyPage, MetadataSnapshot

logger = get_logger(__name__)

GET_DEVICES = """
    SELECT d.devid, h.hostip, h.altip, h.http_port, h.http_get_port,
           d.status, h.status
    FROM device d
    LEFT JOIN host h ON d.hostid = h.hostid
"""

GET_DOMAINS = "SELECT dmid, namespace FROM domain"

GET_FID = "SELECT fid FROM file WHERE dmid = {p} AND dkey = {p} LIMIT 1"

GET_DEVIDS = "SELECT devid FROM file_on WHERE fid = {p} ORDER BY devid"

GET_LENGTH = "SELECT length FROM file WHERE dmid = {p} AND dkey = {p} LIMIT 1"

LIST_KEYS = """
    SELECT dkey, length, devcount
    FROM file
    WHERE dmid = {p} AND dkey LIKE {p} ESCAPE '!' AND dkey > {p}
    ORDER BY dkey
    LIMIT {p}
"""

READABLE_DEVICE_STATUSES = ('alive', 'readonly')


def device_from_row(row: Sequence) -> Optional[Device]:
    """
    Build a Device from a GET_DEVICES row.

    Returns:
        Device, or None for rows without host info or whose host or device is not readable
    """
    devid, hostip, altip, http_port, http_get_port, dev_status, host_status = row
    if devid is None or not hostip:
        return None
    if host_status != 'alive' or dev_status not in READABLE_DEVICE_STATUSES:
        return None

    http_port = int(http_port) if http_port else DEFAULT_HTTP_PORT
    http_get_port = int(http_get_port) if http_get_port else http_port
    return Device(
        devid=int(devid),
        hostip=hostip,
        altip=altip or hostip,
        http_port=http_port,
        http_get_port=http_get_port,
        readable=True,
    )


def _like_prefix(prefix: str) -> str:
    escaped = prefix.replace('!', '!!').replace('%', '!%').replace('_', '!_')
    return escaped + '%'


class MetadataCache:
    """
    Device and domain tables loaded from the tracker database.

    Readers always see one complete MetadataSnapshot. Refreshes build a new
    snapshot and swap it in; nothing refreshes implicitly, so staleness is
    bounded only by the caller's own refresh calls.
    """

    def __init__(self, conn, placeholder: str = '?'):
        """
        Args:
            conn: DB-API connection to the tracker database
            placeholder: Parameter marker of the driver ('?' for sqlite3, '%s' for MySQL drivers)
        """
        self.conn = conn
        self.placeholder = placeholder
        self._snapshot = MetadataSnapshot.build()
        self._refresh_lock = threading.Lock()

    @property
    def snapshot(self) -> MetadataSnapshot:
        return self._snapshot

    def query(self, sql: str, params: Sequence = ()) -> List[Sequence]:
        cursor = self.conn.cursor()
        try:
            cursor.execute(sql.format(p=self.placeholder), tuple(params))
            return cursor.fetchall()
        finally:
            cursor.close()

    def _swap(self, build: Callable[[MetadataSnapshot], MetadataSnapshot]) -> MetadataSnapshot:
        with self._refresh_lock:
            self._snapshot = build(self._snapshot)
            return self._snapshot

    def refresh_device(self) -> Mapping[int, Device]:
        """
        Reload the device table.

        Returns:
            The new devid -> Device mapping
        """
        devices: Dict[int, Device] = {}
        for row in self.query(GET_DEVICES):
            device = device_from_row(row)
            if device is not None:
                devices[device.devid] = device

        snapshot = self._swap(lambda old: MetadataSnapshot.build(devices, old.domains))
        logger.info(f"Refreshed device cache [devices={len(devices)}]")
        return snapshot.devices

    def refresh_domain(self) -> Mapping[str, int]:
        """
        Reload the domain table.

        Returns:
            The new name -> domain id mapping
        """
        domains = {namespace: int(dmid) for dmid, namespace in self.query(GET_DOMAINS)}

        snapshot = self._swap(lambda old: MetadataSnapshot.build(old.devices, domains))
        logger.info(f"Refreshed domain cache [domains={len(domains)}]")
        return snapshot.domains

    def refresh(self) -> MetadataSnapshot:
        self.refresh_device()
        self.refresh_domain()
        return self._snapshot


class DirectMetadataStore:
    """
    Answers path, listing and size lookups straight from the tracker database.

    Device and domain rows come from the shared MetadataCache; file rows are
    queried on every call.
    """

    def __init__(self, cache: MetadataCache):
        self.cache = cache

    def _domain_id(self, snapshot: MetadataSnapshot, domain: str) -> int:
        dmid = snapshot.domains.get(domain)
        if dmid is None:
            raise DomainNotFoundError(domain)
        return dmid

    def get_paths(self, domain: str, key: str, zone: Optional[str] = None) -> List[str]:
        """
        Resolve a key to replica URLs without asking the tracker.

        Args:
            domain: Domain name
            key: Key within the domain
            zone: Optional zone hint; ALT_ZONE selects alternate addresses

        Returns:
            Ordered replica URLs; empty when the key is unknown or has no readable replica

        Raises:
            DomainNotFoundError: If the domain is not in the cached snapshot
        """
        snapshot = self.cache.snapshot
        dmid = self._domain_id(snapshot, domain)

        rows = self.cache.query(GET_FID, (dmid, key))
        if not rows:
            return []
        fid = int(rows[0][0])

        devids = [int(row[0]) for row in self.cache.query(GET_DEVIDS, (fid,))]
        return device_urls(fid, devids, snapshot.devices, zone)

    def list_keys(self, domain: str, prefix: str = '', after: str = '',
                  limit: int = LIST_KEYS_LIMIT,
                  on_key: Optional[Callable[[str, int, int], None]] = None) -> Optional[KeyPage]:
        """
        List keys of a domain in key order.

        Args:
            domain: Domain name
            prefix: Key prefix to match
            after: Only keys sorting after this one are returned
            limit: Maximum number of keys
            on_key: Optional callback receiving (dkey, length, devcount) per row

        Returns:
            KeyPage whose cursor is the last key, or None when nothing matches

        Raises:
            DomainNotFoundError: If the domain is not in the cached snapshot
        """
        dmid = self._domain_id(self.cache.snapshot, domain)
        rows = self.cache.query(LIST_KEYS, (dmid, _like_prefix(prefix), after or '', int(limit)))
        if not rows:
            return None

        keys = []
        for dkey, length, devcount in rows:
            keys.append(dkey)
            if on_key is not None:
                on_key(dkey, int(length), int(devcount))
        return KeyPage(keys=keys, next_after=keys[-1])

    def size(self, domain: str, key: str) -> Optional[int]:
        """
        Look up the stored length of a key.

        Raises:
            DomainNotFoundError: If the domain is not in the cached snapshot
        """
        dmid = self._domain_id(self.cache.snapshot, domain)
        rows = self.cache.query(GET_LENGTH, (dmid, key))
        if not rows:
            return None
        return int(rows[0][0])
