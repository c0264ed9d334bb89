# Services/revalidation.py
"""
Page cache for the public mirror endpoints and the path/tag revalidation
calls every mutation issues after it commits.
"""
import logging
import os
import time
from collections import deque
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx

logger = logging.getLogger(__name__)

_DEFAULT_TTL_S = float(os.getenv("PAGE_CACHE_TTL_S", "300"))
WEBHOOK_TIMEOUT_S = float(os.getenv("REVALIDATE_WEBHOOK_TIMEOUT_S", "5"))


class PageCache:
    def __init__(self, ttl_s: float = _DEFAULT_TTL_S, history: int = 200) -> None:
        self._ttl_s = ttl_s
        self._entries: Dict[str, dict] = {}
        self.recent = deque(maxlen=history)

    def get(self, key: str):
        entry = self._entries.get(key)
        if entry and time.time() - entry["ts"] < self._ttl_s:
            return entry["value"]
        return None

    def set(self, key: str, value: Any, path: str, tags: Iterable[str] = ()) -> None:
        self._entries[key] = {
            "value": value,
            "ts": time.time(),
            "path": path,
            "tags": set(tags),
        }

    def invalidate_path(self, path: str) -> int:
        path = path.rstrip("/") or "/"
        dropped = 0
        for key, entry in list(self._entries.items()):
            if entry["path"] == path or (path != "/" and entry["path"].startswith(path + "/")):
                self._entries.pop(key, None)
                dropped += 1
        self.recent.append(("path", path))
        return dropped

    def invalidate_tag(self, tag: str) -> int:
        dropped = 0
        for key, entry in list(self._entries.items()):
            if tag in entry["tags"]:
                self._entries.pop(key, None)
                dropped += 1
        self.recent.append(("tag", tag))
        return dropped

    def clear(self) -> None:
        self._entries.clear()
        self.recent.clear()

    def was_revalidated(self, kind: str, value: str) -> bool:
        return (kind, value) in self.recent


page_cache = PageCache()


def cached(path: str, key: str, tags: Iterable[str], loader: Callable[[], Any]):
    """Serve `key` from the page cache, computing it with `loader` on a miss."""
    value = page_cache.get(key)
    if value is None:
        value = loader()
        page_cache.set(key, value, path=path, tags=tags)
    return value


def _notify(paths: List[str], tags: List[str]) -> None:
    """Forward one mutation's invalidations to the front-end in a single request."""
    url = (os.getenv("REVALIDATE_WEBHOOK_URL") or "").strip()
    if not url:
        return
    headers = {}
    secret = (os.getenv("REVALIDATE_SECRET") or "").strip()
    if secret:
        headers["Authorization"] = f"Bearer {secret}"
    try:
        res = httpx.post(url, json={"paths": paths, "tags": tags}, headers=headers, timeout=WEBHOOK_TIMEOUT_S)
        if res.status_code >= 400:
            logger.warning(f"revalidate_webhook_failed paths={paths} tags={tags} status={res.status_code}")
    except httpx.HTTPError as e:
        # The write already committed; the front-end catches up on its own TTL
        logger.warning(f"revalidate_webhook_error paths={paths} tags={tags} error={e}")


def _evict_path(path: str) -> None:
    dropped = page_cache.invalidate_path(path)
    logger.debug(f"revalidate path={path} dropped={dropped}")


def _evict_tag(tag: str) -> None:
    dropped = page_cache.invalidate_tag(tag)
    logger.debug(f"revalidate tag={tag} dropped={dropped}")


def revalidate_path(path: str) -> None:
    _evict_path(path)
    _notify([path], [])


def revalidate_tag(tag: str) -> None:
    _evict_tag(tag)
    _notify([], [tag])


def revalidate(*paths: str, tags: Optional[Iterable[str]] = None) -> None:
    tags = list(tags or ())
    for path in paths:
        _evict_path(path)
    for tag in tags:
        _evict_tag(tag)
    if paths or tags:
        _notify(list(paths), tags)
