"""Resolution of (domain, key) to ordered replica candidates."""

import os
from typing import Iterable, List, Mapping, Optional

from common.constants import ALT_ZONE
from common.logging_config import get_logger
from mogclient.types import Device, is_http_url

logger = get_logger(__name__)


def fid_path(devid: int, fid: int) -> str:
    """
    Build the on-device path of a FID.

    Args:
        devid: Device id holding the replica
        fid: File id

    Returns:
        Path such as "/dev1/0/000/000/0000000012.fid"
    """
    nfid = "%010d" % int(fid)
    return f"/dev{devid}/{nfid[0]}/{nfid[1:4]}/{nfid[4:7]}/{nfid}.fid"


def device_urls(fid: int, devids: Iterable[int], devices: Mapping[int, Device],
                zone: Optional[str] = None) -> List[str]:
    """
    Build one replica URL per readable device, preserving device order.

    Args:
        fid: File id
        devids: Devices holding the FID, in order
        devices: Cached device table
        zone: Optional zone hint; ALT_ZONE selects each device's alternate address

    Returns:
        Ordered list of replica URLs; unknown or unreadable devices are left out
    """
    urls = []
    for devid in devids:
        device = devices.get(int(devid))
        if device is None or not device.readable:
            logger.debug(f"Skipping unreadable device {devid} for fid={fid}")
            continue
        host = device.host_for(zone, ALT_ZONE)
        urls.append(f"http://{host}:{device.get_port()}{fid_path(device.devid, fid)}")
    return urls


class PathResolver:
    """Turns keys of one domain into ordered replica candidates."""

    def __init__(self, backend, domain: str, root: Optional[str] = None, direct=None):
        """
        Args:
            backend: Tracker client
            domain: Domain the keys belong to
            root: NFS mount point joined onto relative tracker paths
            direct: Optional DirectMetadataStore used instead of the tracker
        """
        self.backend = backend
        self.domain = domain
        self.root = root
        self.direct = direct

    def get_paths(self, key: str, noverify: bool = True, zone: Optional[str] = None) -> List[str]:
        """
        Resolve a key to its replica candidates.

        Args:
            key: Key within the domain
            noverify: Ask the tracker not to verify replicas before answering
            zone: Optional zone hint

        Returns:
            Ordered candidates; empty when the key has no live replicas
        """
        if self.direct is not None:
            return self.direct.get_paths(self.domain, key, zone=zone)

        res = self.backend.get_paths(domain=self.domain, key=key,
                                     noverify=1 if noverify else 0, zone=zone)
        count = int(res.get('paths') or 0)
        paths = [res.get(f"path{i}") for i in range(1, count + 1)]
        paths = [p for p in paths if p]
        logger.debug(f"Resolved {key} to {len(paths)} path(s)")

        if not paths or is_http_url(paths[0]) or self.root is None:
            return paths
        return [os.path.join(self.root, p.lstrip('/')) for p in paths]
