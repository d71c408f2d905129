"""Downstream search indexing of workflow records.

Indexing runs after a reconciliation commits and never affects its outcome.
"""

import asyncio
from abc import ABC, abstractmethod

import structlog

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class IndexerBase(ABC):
    """Indexes a workflow record in the search backend."""

    @abstractmethod
    async def index_document(self, action_item_id: int) -> None:
        """Index (or re-index) the workflow record with the given ID."""
        pass


class LoggingIndexer(IndexerBase):
    """Indexer used when no search backend is configured."""

    async def index_document(self, action_item_id: int) -> None:
        logger.info("Search indexing is not configured, skipping", action_item_id=action_item_id)


class IndexingScheduler:
    """Runs indexing requests as detached tasks and logs their failures."""

    def __init__(self, indexer: IndexerBase) -> None:
        """Initialize the scheduler with the indexer to call."""
        self.indexer = indexer
        self._tasks: set[asyncio.Task[None]] = set()

    def schedule(self, action_item_id: int) -> asyncio.Task[None]:
        """Start indexing the workflow record without waiting for it."""
        task = asyncio.create_task(self._run(action_item_id), name=f"index-action-item-{action_item_id}")
        # Keep a reference so the task is not garbage collected mid-flight.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, action_item_id: int) -> None:
        try:
            await self.indexer.index_document(action_item_id)
        except Exception as exc:
            logger.error("Failed to index workflow record", action_item_id=action_item_id, error=str(exc), exc_info=True)

    async def drain(self) -> None:
        """Wait for every scheduled indexing task to finish."""
        if self._tasks:
            await asyncio.gather(*self._tasks)
