# =============================================================================
# app/registry.py - Open Uploader Registry
# =============================================================================
# Keeps the UploadStateMachine of every open uploader widget, keyed by a
# generated id. Each uploader owns its state; the registry only tracks them.
#
# HTTP clients never disconnect, so abandoned uploaders (closed tab, page
# navigated away) are closed by the registry itself:
# - idle: untouched for UPLOADER_IDLE_TTL_SECONDS
# - capacity: beyond MAX_OPEN_UPLOADERS, the least recently used goes first
# Both are enforced on add() and get().
#
# Usage:
#   from app.registry import uploader_registry
#
#   uploader_id = uploader_registry.add(uploader)
#   uploader = uploader_registry.get(uploader_id)
#   uploader_registry.remove(uploader_id)
# =============================================================================

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from uuid import uuid4

from app.config import settings
from app.exceptions import UploaderNotFoundError
from core.services.upload_state_machine import UploadStateMachine

logger = logging.getLogger(__name__)


class UploaderRegistry:
    """
    In-process map of uploader id -> UploadStateMachine.

    Uploaders for different entities never share state; they may race
    freely against each other on the backend.

    Entries are kept in least-recently-used order, with the time each was
    last touched.
    """

    def __init__(
        self,
        max_open: int | None = None,
        idle_ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_open = max_open or settings.MAX_OPEN_UPLOADERS
        self.idle_ttl_seconds = idle_ttl_seconds or settings.UPLOADER_IDLE_TTL_SECONDS
        self._clock = clock
        self.uploaders: OrderedDict[str, UploadStateMachine] = OrderedDict()
        self._last_used: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self.uploaders)

    def __contains__(self, uploader_id: str) -> bool:
        return uploader_id in self.uploaders

    def add(self, uploader: UploadStateMachine) -> str:
        """
        Track a new uploader and assign its id.

        Closes idle uploaders first, then the least recently used ones until
        there is room for the new one.

        Returns:
            The generated uploader id
        """
        self._evict_idle()
        while len(self.uploaders) >= self.max_open:
            oldest_id = next(iter(self.uploaders))
            self._drop(oldest_id, reason="capacity")

        uploader_id = str(uuid4())
        uploader.uploader_id = uploader_id
        self.uploaders[uploader_id] = uploader
        self._last_used[uploader_id] = self._clock()

        logger.info(
            f"Uploader {uploader_id} opened for {uploader.target.kind.value} "
            f"{uploader.target.entity_id}. Open uploaders: {len(self.uploaders)}"
        )
        return uploader_id

    def get(self, uploader_id: str) -> UploadStateMachine:
        """
        Look up an uploader and mark it as recently used.

        Raises:
            UploaderNotFoundError: unknown, closed or evicted id
        """
        self._evict_idle()
        uploader = self.uploaders.get(uploader_id)
        if uploader is None:
            raise UploaderNotFoundError(uploader_id)

        self.uploaders.move_to_end(uploader_id)
        self._last_used[uploader_id] = self._clock()
        return uploader

    def remove(self, uploader_id: str) -> None:
        """Close an uploader. Unknown ids raise UploaderNotFoundError."""
        if uploader_id not in self.uploaders:
            raise UploaderNotFoundError(uploader_id)
        self._drop(uploader_id, reason="by client")

    def clear(self) -> None:
        self.uploaders.clear()
        self._last_used.clear()

    def _evict_idle(self) -> None:
        cutoff = self._clock() - self.idle_ttl_seconds
        # Oldest first; stop at the first entry that is still fresh
        for uploader_id in list(self.uploaders):
            if self._last_used[uploader_id] > cutoff:
                break
            self._drop(uploader_id, reason="idle")

    def _drop(self, uploader_id: str, reason: str) -> None:
        del self.uploaders[uploader_id]
        del self._last_used[uploader_id]
        logger.info(f"Uploader {uploader_id} closed ({reason}). Open uploaders: {len(self.uploaders)}")


# Global registry instance
uploader_registry = UploaderRegistry()
