# =============================================================================
# Unit Tests — Ingestion Queue and Celery Task
# =============================================================================
#
# No broker needed: apply_async and AsyncResult are patched, and the task
# body runs eagerly through Task.apply().
# =============================================================================

from unittest.mock import MagicMock, patch

import pytest
from kombu.exceptions import OperationalError

from pdfchat.errors import EnqueueError, FatalError, RetryableError
from pdfchat.models.domain import UploadJob
from pdfchat.services.processor import ProcessingResult
from pdfchat.workers.celery_app import celery_app
from pdfchat.workers.queue import enqueue, job_status
from pdfchat.workers.tasks import TASK_NAME, process_upload


def _job() -> UploadJob:
    return UploadJob(filename="doc.pdf", storage_path="uploads/1-2-doc.pdf")


class TestEnqueue:
    """Tests for enqueue()."""

    def test_publishes_exactly_one_task(self):
        with patch.object(
            process_upload, "apply_async", return_value=MagicMock(id="job-123"),
        ) as mock_apply:
            job_id = enqueue(_job())

        assert job_id == "job-123"
        mock_apply.assert_called_once_with(
            kwargs={"filename": "doc.pdf", "storage_path": "uploads/1-2-doc.pdf"},
            retry=False,
        )

    @pytest.mark.parametrize(
        "exc", [OperationalError("broker down"), ConnectionRefusedError("refused")],
    )
    def test_broker_failure_raises_enqueue_error(self, exc):
        with patch.object(process_upload, "apply_async", side_effect=exc):
            with pytest.raises(EnqueueError) as excinfo:
                enqueue(_job())

        assert excinfo.value.status_code == 500
        assert excinfo.value.message == "Failed to upload file"


class TestJobStatus:
    """Tests for job_status()."""

    def _status(self, **attrs):
        with patch(
            "pdfchat.workers.queue.AsyncResult", return_value=MagicMock(**attrs),
        ):
            return job_status("job-123")

    def test_success_carries_result(self):
        status = self._status(status="SUCCESS", result={"chunk_count": 4})
        assert status.status == "SUCCESS"
        assert status.result == {"chunk_count": 4}
        assert status.error is None

    def test_failure_carries_error(self):
        status = self._status(status="FAILURE", result=ValueError("bad pdf"))
        assert status.status == "FAILURE"
        assert status.error == "bad pdf"

    def test_pending_has_neither(self):
        status = self._status(status="PENDING", result=None)
        assert status.status == "PENDING"
        assert status.result is None
        assert status.error is None


class TestProcessUploadTask:
    """Tests for the process_upload Celery task."""

    def test_task_is_registered_under_its_name(self):
        assert celery_app.tasks[TASK_NAME] is process_upload

    def test_runs_processor_and_returns_summary(self):
        summary = ProcessingResult(filename="doc.pdf", chunk_count=3, page_count=3)
        with patch("pdfchat.workers.tasks.process", return_value=summary) as mock_process:
            result = process_upload.apply(kwargs=_job().model_dump())

        assert result.successful()
        assert result.result == {"filename": "doc.pdf", "chunk_count": 3, "page_count": 3}
        job = mock_process.call_args.args[0]
        assert job == _job()

    def test_fatal_error_fails_the_job(self):
        with patch(
            "pdfchat.workers.tasks.process", side_effect=FatalError("bad key"),
        ):
            result = process_upload.apply(kwargs=_job().model_dump())

        assert result.failed()
        assert isinstance(result.result, FatalError)

    def test_only_retryable_errors_are_retried(self):
        assert process_upload.autoretry_for == (RetryableError,)

    def test_delivery_is_at_least_once(self):
        assert celery_app.conf.task_acks_late is True
        assert celery_app.conf.worker_prefetch_multiplier == 1
        assert celery_app.conf.task_default_queue == "file-upload-queue"
