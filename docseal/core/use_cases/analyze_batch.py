"""
Use Case: Analyze Batch

Runs several uploads from one owner through SubmitDocumentUseCase,
one after another, in a background task. Progress is observable
(`status`, `stream`) and the batch can be cancelled cooperatively:
items already finished keep their results, items not yet started are
abandoned, the item in progress runs to completion.
"""

import asyncio
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import AsyncIterator

from docseal.core.entities.document import DocumentClass
from docseal.core.entities.permission import utcnow
from docseal.core.entities.submission_result import SubmissionResult
from docseal.core.errors import DocSealError, NotFoundError, ValidationError
from docseal.core.use_cases.submit_document import SubmitDocumentUseCase

logger = logging.getLogger(__name__)

MAX_TRACKED_BATCHES = 256


class BatchState(str, Enum):
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchState.COMPLETED, BatchState.CANCELLED)


class ItemStatus(str, Enum):
    PENDING = "PENDING"
    DONE = "DONE"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class BatchUpload:
    """One file in a batch."""
    image_bytes: bytes
    document_class: DocumentClass
    title: str = ""
    mime_type: str = "image/jpeg"


@dataclass(frozen=True)
class BatchItemResult:
    index: int
    title: str
    status: ItemStatus = ItemStatus.PENDING
    result: SubmissionResult | None = None
    error: str | None = None


@dataclass(frozen=True)
class BatchProgress:
    """Point-in-time snapshot of a batch."""
    batch_id: str
    owner_id: str
    state: BatchState
    items: tuple[BatchItemResult, ...]
    created_at: datetime
    finished_at: datetime | None = None

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def completed(self) -> int:
        return sum(1 for i in self.items if i.status is ItemStatus.DONE)

    @property
    def failed(self) -> int:
        return sum(1 for i in self.items if i.status is ItemStatus.FAILED)

    @property
    def processed(self) -> int:
        return self.completed + self.failed

    @property
    def percent(self) -> float:
        return round(100.0 * self.processed / self.total, 1) if self.total else 100.0


@dataclass
class _Batch:
    progress: BatchProgress
    uploads: list[BatchUpload]
    changed: asyncio.Condition = field(default_factory=asyncio.Condition)
    revision: int = 0
    cancel_requested: bool = False
    task: asyncio.Task | None = None


class AnalyzeBatchUseCase:
    """Use Case: many uploads → many SubmissionResults, with progress."""

    def __init__(self, submit: SubmitDocumentUseCase, max_size: int = 100):
        self._submit = submit
        self._max_size = max_size
        self._batches: OrderedDict[str, _Batch] = OrderedDict()

    def start(self, owner_id: str, uploads: list[BatchUpload]) -> BatchProgress:
        """Register the batch and schedule it on the running loop."""
        if not uploads:
            raise ValidationError("A batch needs at least one file")
        if len(uploads) > self._max_size:
            raise ValidationError(f"Maximum {self._max_size} documents per batch", size=len(uploads))

        batch_id = str(uuid.uuid4())
        batch = _Batch(
            progress=BatchProgress(
                batch_id=batch_id,
                owner_id=owner_id,
                state=BatchState.QUEUED,
                items=tuple(BatchItemResult(index=i, title=u.title) for i, u in enumerate(uploads)),
                created_at=utcnow(),
            ),
            uploads=list(uploads),
        )
        self._track(batch_id, batch)
        batch.task = asyncio.get_running_loop().create_task(self._run(batch))
        logger.info(f"Batch {batch_id} queued with {len(uploads)} item(s) for {owner_id}")
        return batch.progress

    def status(self, batch_id: str) -> BatchProgress:
        return self._get(batch_id).progress

    async def wait(self, batch_id: str) -> BatchProgress:
        batch = self._get(batch_id)
        if batch.task is not None:
            await asyncio.shield(batch.task)
        return batch.progress

    async def stream(self, batch_id: str) -> AsyncIterator[BatchProgress]:
        """Yield a snapshot after every change until the batch is terminal."""
        batch = self._get(batch_id)
        seen = -1
        while True:
            async with batch.changed:
                await batch.changed.wait_for(lambda: batch.revision != seen)
                seen = batch.revision
                snapshot = batch.progress
            yield snapshot
            if snapshot.state.is_terminal:
                return

    def cancel(self, batch_id: str) -> BatchProgress:
        batch = self._get(batch_id)
        if not batch.progress.state.is_terminal:
            batch.cancel_requested = True
            logger.info(f"Cancellation requested for batch {batch_id}")
        return batch.progress

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run(self, batch: _Batch) -> None:
        progress = batch.progress
        await self._publish(batch, replace(progress, state=BatchState.RUNNING))

        for index, upload in enumerate(batch.uploads):
            if batch.cancel_requested:
                await self._abandon_rest(batch, index)
                return

            item = batch.progress.items[index]
            try:
                result = await self._submit.execute(
                    upload.image_bytes,
                    owner_id=progress.owner_id,
                    document_class=upload.document_class,
                    title=upload.title,
                    mime_type=upload.mime_type,
                )
                item = replace(item, status=ItemStatus.DONE, result=result)
            except DocSealError as e:
                logger.warning(f"Batch {progress.batch_id} item {index} failed: {e}")
                item = replace(item, status=ItemStatus.FAILED, error=str(e))
            except Exception as e:
                logger.exception(f"Batch {progress.batch_id} item {index} crashed")
                item = replace(item, status=ItemStatus.FAILED, error=f"Processing failed: {e}")

            items = list(batch.progress.items)
            items[index] = item
            await self._publish(batch, replace(batch.progress, items=tuple(items)))

        await self._publish(batch, replace(batch.progress, state=BatchState.COMPLETED, finished_at=utcnow()))
        final = batch.progress
        logger.info(
            f"Batch {final.batch_id} completed: {final.completed} done, {final.failed} failed of {final.total}"
        )

    async def _abandon_rest(self, batch: _Batch, start: int) -> None:
        items = list(batch.progress.items)
        for i in range(start, len(items)):
            items[i] = replace(items[i], status=ItemStatus.CANCELLED)
        await self._publish(batch, replace(
            batch.progress,
            state=BatchState.CANCELLED,
            items=tuple(items),
            finished_at=utcnow(),
        ))
        logger.info(f"Batch {batch.progress.batch_id} cancelled after {start} item(s)")

    @staticmethod
    async def _publish(batch: _Batch, progress: BatchProgress) -> None:
        async with batch.changed:
            batch.progress = progress
            batch.revision += 1
            batch.changed.notify_all()

    def _track(self, batch_id: str, batch: _Batch) -> None:
        self._batches[batch_id] = batch
        while len(self._batches) > MAX_TRACKED_BATCHES:
            oldest_id, oldest = next(iter(self._batches.items()))
            if not oldest.progress.state.is_terminal:
                break
            del self._batches[oldest_id]

    def _get(self, batch_id: str) -> _Batch:
        batch = self._batches.get(batch_id)
        if batch is None:
            raise NotFoundError("Batch", batch_id)
        return batch
