"""
Tests for AnalyzeBatchUseCase: progress, per-item failure, cancellation.
"""

import anyio
import pytest

from docseal.core.entities.document import DocumentClass
from docseal.core.errors import NotFoundError, ValidationError
from docseal.core.interfaces.analysis_capability import SignalFamily
from docseal.core.use_cases.analyze_batch import AnalyzeBatchUseCase, BatchState, BatchUpload, ItemStatus


def _uploads(n, document_class=DocumentClass.PASSPORT):
    return [BatchUpload(image_bytes=f"scan-{i}".encode(), document_class=document_class, title=f"scan-{i}.jpg") for i in range(n)]


class TestBatch:

    def test_runs_every_item(self, container):
        async def run():
            progress = container.batches.start("owner-1", _uploads(3))
            assert progress.state is BatchState.QUEUED
            return await container.batches.wait(progress.batch_id)

        final = anyio.run(run)
        assert final.state is BatchState.COMPLETED
        assert final.completed == 3
        assert final.percent == 100.0
        assert final.finished_at is not None
        assert len({item.result.document.id for item in final.items}) == 3

    def test_failed_item_does_not_stop_the_rest(self, container):
        uploads = _uploads(2)
        uploads.insert(1, BatchUpload(image_bytes=b"", document_class=DocumentClass.PASSPORT, title="empty.jpg"))

        async def run():
            progress = container.batches.start("owner-1", uploads)
            return await container.batches.wait(progress.batch_id)

        final = anyio.run(run)
        assert [i.status for i in final.items] == [ItemStatus.DONE, ItemStatus.FAILED, ItemStatus.DONE]
        assert final.items[1].error
        assert final.state is BatchState.COMPLETED

    def test_stream_reports_progress_until_done(self, container):
        async def run():
            progress = container.batches.start("owner-1", _uploads(2))
            return [snapshot async for snapshot in container.batches.stream(progress.batch_id)]

        snapshots = anyio.run(run)
        assert snapshots[-1].state is BatchState.COMPLETED
        processed = [s.processed for s in snapshots]
        assert processed == sorted(processed)

    def test_cancel_keeps_finished_results(self, container, analysis):
        analysis.delays = {family: 0.05 for family in SignalFamily}

        async def run():
            progress = container.batches.start("owner-1", _uploads(4))
            async for snapshot in container.batches.stream(progress.batch_id):
                if snapshot.completed >= 1:
                    container.batches.cancel(progress.batch_id)
                    break
            return await container.batches.wait(progress.batch_id)

        final = anyio.run(run)
        assert final.state is BatchState.CANCELLED
        assert final.items[0].status is ItemStatus.DONE
        assert final.items[0].result is not None
        assert final.items[-1].status is ItemStatus.CANCELLED
        assert final.completed < 4

    def test_size_limits(self, container):
        batches = AnalyzeBatchUseCase(container.submit, max_size=2)
        with pytest.raises(ValidationError):
            batches.start("owner-1", [])
        with pytest.raises(ValidationError):
            batches.start("owner-1", _uploads(3))

    def test_unknown_batch(self, container):
        with pytest.raises(NotFoundError):
            container.batches.status("nope")
