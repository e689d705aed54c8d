"""Per-resource dedup guard for video jobs."""

import logging
from typing import List, Set

from qudemo_jobs.jobs.errors import AlreadyProcessed, DuplicateInProgress

logger = logging.getLogger(__name__)


class DedupGuard:
    """Tracks which video resources are in progress and which are done.

    A key is claimed at enqueue time, promoted to "processed" when the job
    succeeds and released when an attempt fails.
    """

    def __init__(self):
        self._processing: Set[str] = set()
        self._processed: Set[str] = set()

    def claim(self, resource_key: str) -> None:
        """Reserve a key for a new job, or raise if it is taken."""
        if resource_key in self._processing:
            logger.warning("Video already being processed", extra={"resource_key": resource_key})
            raise DuplicateInProgress(resource_key)
        if resource_key in self._processed:
            logger.warning("Video already processed", extra={"resource_key": resource_key})
            raise AlreadyProcessed(resource_key)
        self._processing.add(resource_key)

    def mark_processed(self, resource_key: str) -> None:
        self._processing.discard(resource_key)
        self._processed.add(resource_key)

    def release(self, resource_key: str) -> None:
        self._processing.discard(resource_key)

    def clear(self) -> None:
        self._processing.clear()
        self._processed.clear()
        logger.info("Cleared processed and processing video cache")

    def clear_resource(self, resource_key: str) -> None:
        self._processing.discard(resource_key)
        self._processed.discard(resource_key)
        logger.info("Cleared video from cache", extra={"resource_key": resource_key})

    def is_processing(self, resource_key: str) -> bool:
        return resource_key in self._processing

    def is_processed(self, resource_key: str) -> bool:
        return resource_key in self._processed

    @property
    def processing_keys(self) -> List[str]:
        return sorted(self._processing)

    @property
    def processed_keys(self) -> List[str]:
        return sorted(self._processed)
