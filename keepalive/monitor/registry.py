"""Target registry — the ordered, de-duplicated set of URLs to probe.

Built once at start-up from the primary URL plus the backup list, then only
ever grows: a successful protocol fallback appends the alternate URL so that
later rounds probe it directly. Nothing is ever removed.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

SCHEMES = ("http://", "https://")


def is_valid_url(url: str | None) -> bool:
    """Non-empty and starting with an HTTP(S) scheme prefix."""
    return bool(url) and url.startswith(SCHEMES)


class TargetRegistry:
    """Insertion-ordered unique list of target URLs.

    Appends are serialized with a lock so overlapping rounds can both
    discover the same fallback URL without duplicating it.
    """

    def __init__(self, urls: Iterable[str | None] = ()) -> None:
        self._lock = threading.Lock()
        self._urls: list[str] = []
        for url in urls:
            if not is_valid_url(url):
                if url:
                    logger.warning("Ignoring invalid target URL: %r", url)
                continue
            if url not in self._urls:
                self._urls.append(url)

    def append(self, url: str) -> bool:
        """Add *url* if absent. Returns True only when it was added."""
        if not is_valid_url(url):
            return False
        with self._lock:
            if url in self._urls:
                return False
            self._urls.append(url)
        logger.info("Target added: %s", url)
        return True

    def add(self, url: str, strict: bool = False) -> bool:
        """Like append(), but raise ValueError for a malformed URL when strict."""
        if strict and not is_valid_url(url):
            raise ValueError(f"Not an http(s) URL: {url!r}")
        return self.append(url)

    def snapshot(self) -> tuple[str, ...]:
        """Point-in-time copy; later appends don't affect it."""
        with self._lock:
            return tuple(self._urls)

    @property
    def urls(self) -> tuple[str, ...]:
        return self.snapshot()

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._urls

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._urls)
