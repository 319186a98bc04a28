"""Cursor-based key listing."""

from typing import Iterator, Optional

from common.constants import LIST_KEYS_LIMIT
from common.logging_config import get_logger
from mogclient.exceptions import NoneMatchError
from mogclient.types import KeyPage

logger = get_logger(__name__)


class KeyEnumerator:
    """Pages through the keys of one domain."""

    def __init__(self, backend, domain: str, direct=None):
        self.backend = backend
        self.domain = domain
        self.direct = direct

    def list_keys(self, prefix: str, after: Optional[str] = None,
                  limit: int = LIST_KEYS_LIMIT) -> Optional[KeyPage]:
        """
        Fetch one page of keys starting with prefix.

        Args:
            prefix: Key prefix to match
            after: Cursor from the previous page, or None to start at the beginning
            limit: Maximum number of keys in the page

        Returns:
            KeyPage with the keys in order and the next cursor, or None when nothing matches
        """
        if self.direct is not None:
            return self.direct.list_keys(self.domain, prefix, after or '', limit)

        try:
            res = self.backend.list_keys(domain=self.domain, prefix=prefix,
                                         after=after, limit=limit)
        except NoneMatchError:
            return None

        count = int(res.get('key_count') or 0)
        keys = [res.get(f"key_{i}") for i in range(1, count + 1)]
        return KeyPage(keys=keys, next_after=res.get('next_after'))

    def each_key(self, prefix: str) -> Iterator[str]:
        """
        Yield every key starting with prefix, threading the cursor between pages.

        Stops at the first empty page.
        """
        page = self.list_keys(prefix)
        while page is not None and page.keys:
            logger.debug(f"Listed {len(page.keys)} key(s) [prefix={prefix}, next_after={page.next_after}]")
            yield from page.keys
            page = self.list_keys(prefix, page.next_after)
