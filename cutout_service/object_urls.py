"""
Temporary object references for uploaded blobs.

A reference (``blob:<uuid>``) lets a loaded upload be addressed like any
other image source until it is revoked. References are process-local and
must be released explicitly; `ObjectUrlScope` releases everything it created
when the block exits, whether or not it raised.
"""

from __future__ import annotations

import logging
import uuid
from threading import Lock
from typing import Dict, List

from .exceptions import ImageLoadError

logger = logging.getLogger(__name__)

BLOB_SCHEME = "blob:"


class ObjectUrlRegistry:
    def __init__(self) -> None:
        self._blobs: Dict[str, bytes] = {}
        self._lock = Lock()

    def create(self, data: bytes) -> str:
        url = f"{BLOB_SCHEME}{uuid.uuid4()}"
        with self._lock:
            self._blobs[url] = data
        logger.debug("object url created %s (%d bytes)", url, len(data))
        return url

    def resolve(self, url: str) -> bytes:
        with self._lock:
            entry = self._blobs.get(url)
        if entry is None:
            raise ImageLoadError("Object URL is unknown or was revoked", source=url)
        return entry

    def revoke(self, url: str) -> None:
        with self._lock:
            removed = self._blobs.pop(url, None)
        if removed is not None:
            logger.debug("object url revoked %s", url)

    @property
    def active(self) -> int:
        with self._lock:
            return len(self._blobs)


class ObjectUrlScope:
    """Context manager that revokes every reference created through it."""

    def __init__(self, registry: ObjectUrlRegistry) -> None:
        self.registry = registry
        self.created: List[str] = []

    def create(self, data: bytes) -> str:
        url = self.registry.create(data)
        self.created.append(url)
        return url

    def release(self) -> None:
        while self.created:
            self.registry.revoke(self.created.pop())

    def __enter__(self) -> "ObjectUrlScope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
