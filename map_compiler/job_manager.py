"""
Async job manager for the map compile pipeline.

Provides:
  - Bounded work queue with configurable concurrency
  - Per-job progress tracking (one compile batch per job)
  - TTL-based cleanup of completed job records
  - submit / get / cancel / wait operations

Every job runs its own batch with its own randomly named working
directory, so concurrent compiles never share files.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from compiler_shared.files import ensure_dir, remove_tree, safe_name

from .config import CompileSettings
from .core.batch import ProgressCallback
from .core.compile import compile_document
from .core.exceptions import ArgumentTemplateError, ToolLaunchError
from .core.ports import MapSourceDocument
from .schemas import CompileJobStatus, CompileRequest, CompileResult, JobRecordView

logger = logging.getLogger(__name__)

_FINISHED = {
    CompileJobStatus.succeeded,
    CompileJobStatus.failed,
    CompileJobStatus.cancelled,
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class JobRecord:
    id: str
    request: CompileRequest
    status: CompileJobStatus
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None
    progress: int = 0
    detail: str = ""
    result: CompileResult | None = None
    error: dict[str, Any] | None = None
    done_event: asyncio.Event = field(default_factory=asyncio.Event)

    def as_view(self) -> JobRecordView:
        return JobRecordView(
            id=self.id,
            status=self.status,
            created_at=self.created_at,
            started_at=self.started_at,
            finished_at=self.finished_at,
            progress=self.progress,
            detail=self.detail,
            request_summary={
                "file_name": self.request.file_name,
                "stages": [a.name for a in self.request.arguments],
                "source_bytes": len(self.request.map_source),
            },
            result=self.result,
            error=self.error,
        )


class CompileJobManager:
    def __init__(self, settings: CompileSettings):
        self.settings = settings
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=settings.max_queue_size)
        self.jobs: dict[str, JobRecord] = {}
        self._workers: list[asyncio.Task] = []
        self._cleanup_task: asyncio.Task | None = None
        self._lock = asyncio.Lock()

    async def startup(self) -> None:
        worker_count = self.settings.max_concurrent_jobs
        for idx in range(worker_count):
            self._workers.append(
                asyncio.create_task(self._worker_loop(idx), name=f"compile-worker-{idx}")
            )
        self._cleanup_task = asyncio.create_task(self._cleanup_loop(), name="compile-cleanup")
        logger.info("compile_job_manager_started workers=%s", worker_count)

    async def shutdown(self) -> None:
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers.clear()
        if self._cleanup_task:
            self._cleanup_task.cancel()
            await asyncio.gather(self._cleanup_task, return_exceptions=True)
            self._cleanup_task = None

    async def submit(self, request: CompileRequest, job_id: str | None = None) -> JobRecord:
        async with self._lock:
            if self.queue.full():
                raise RuntimeError("Job queue is full, retry later")

            _id = job_id or request.request_id or str(uuid.uuid4())
            if _id in self.jobs:
                raise RuntimeError(f"Duplicate job_id: {_id}")

            record = JobRecord(
                id=_id,
                request=request,
                status=CompileJobStatus.queued,
                created_at=_utc_now(),
            )
            self.jobs[_id] = record
            self.queue.put_nowait(_id)
            return record

    async def wait_for_completion(self, job_id: str, timeout_seconds: int) -> JobRecord:
        record = await self.get(job_id)
        try:
            await asyncio.wait_for(record.done_event.wait(), timeout=timeout_seconds)
        except asyncio.TimeoutError:
            raise RuntimeError(f"Job '{job_id}' did not finish within {timeout_seconds}s")
        return await self.get(job_id)

    async def get(self, job_id: str) -> JobRecord:
        record = self.jobs.get(job_id)
        if not record:
            raise KeyError(f"Job not found: {job_id}")
        return record

    async def cancel(self, job_id: str) -> JobRecord:
        record = await self.get(job_id)
        if record.status == CompileJobStatus.queued:
            record.status = CompileJobStatus.cancelled
            record.finished_at = _utc_now()
            record.done_event.set()
            return record
        if record.status in _FINISHED:
            return record
        raise RuntimeError("Running compiles cannot be cancelled")

    def _make_progress_callback(self, record: JobRecord) -> ProgressCallback:
        def _cb(step: str, index: int, total: int) -> None:
            record.progress = 10 + int(85 * index / max(total, 1))
            record.detail = f"Running step {index + 1}/{total}: {step}"
        return _cb

    def job_directory(self, job_id: str) -> Path:
        return self.settings.uploads_dir / safe_name(job_id, fallback="job")

    def artifact_path(self, job_id: str, file_name: str) -> Path | None:
        """A file copy-back left in the job's folder, or None."""
        record = self.jobs.get(job_id)
        if record is None or record.result is None:
            return None
        path = self.job_directory(job_id) / safe_name(file_name, fallback="")
        if str(path) not in record.result.copied or not path.is_file():
            return None
        return path

    def _document_for(self, record: JobRecord) -> MapSourceDocument:
        """Park the source under the uploads dir so byproducts have a folder to land in."""
        request = record.request
        if not request.file_name.strip():
            return MapSourceDocument("", request.map_source)

        job_dir = ensure_dir(self.job_directory(record.id))
        source_path = job_dir / safe_name(Path(request.file_name).name, fallback="untitled.map")
        source_path.write_text(request.map_source, encoding="utf-8")
        return MapSourceDocument(str(source_path), request.map_source, name=Path(request.file_name).name)

    async def _run_job(self, record: JobRecord) -> CompileResult:
        document = self._document_for(record)
        record.progress = 10
        record.detail = "Starting compile batch..."

        return await compile_document(
            document,
            self.settings.environment,
            record.request.arguments,
            launch_confirmed=record.request.launch_confirmed,
            temp_root=self.settings.temp_root,
            tool_timeout=self.settings.tool_timeout_seconds,
            progress_callback=self._make_progress_callback(record),
        )

    async def _worker_loop(self, idx: int) -> None:
        while True:
            job_id = await self.queue.get()
            try:
                record = self.jobs.get(job_id)
                if not record or record.status == CompileJobStatus.cancelled:
                    continue

                record.status = CompileJobStatus.running
                record.started_at = _utc_now()
                record.progress = 5
                record.detail = "Preparing document..."

                try:
                    result = await self._run_job(record)

                    record.result = result
                    record.progress = 100
                    if result.success:
                        record.status = CompileJobStatus.succeeded
                        record.detail = f"Compiled {result.map_file_name}"
                    else:
                        record.status = CompileJobStatus.failed
                        record.error = {
                            "message": "\n".join(result.errors) or "Compile did not produce a BSP file",
                            "status_code": 422,
                        }
                        record.detail = "Compile failed"

                except ToolLaunchError as exc:
                    record.status = CompileJobStatus.failed
                    record.error = {"message": str(exc), "status_code": 500}
                    record.progress = 100
                    record.detail = f"Tool could not be started: {exc.executable}"
                    logger.error("Worker %d: job %s: %s", idx, job_id, exc)

                except ArgumentTemplateError as exc:
                    record.status = CompileJobStatus.failed
                    record.error = {"message": str(exc), "status_code": 422}
                    record.progress = 100
                    record.detail = "Compile aborted"
                    logger.error("Worker %d: job %s: %s", idx, job_id, exc)

                except Exception as exc:
                    record.status = CompileJobStatus.failed
                    record.error = {"message": str(exc), "status_code": 500}
                    record.progress = 100
                    record.detail = f"Error: {str(exc)[:200]}"
                    logger.exception("Worker %d: job %s failed", idx, job_id)

                finally:
                    record.finished_at = _utc_now()
                    record.done_event.set()

            finally:
                self.queue.task_done()

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.settings.cleanup_interval_seconds)
            self.prune(_utc_now())

    def prune(self, now: datetime) -> None:
        ttl = timedelta(seconds=self.settings.finished_job_ttl_seconds)

        expired = [
            jid
            for jid, job in self.jobs.items()
            if job.status in _FINISHED
            and job.finished_at
            and now - job.finished_at > ttl
        ]
        for jid in expired:
            self._forget(jid)

        completed_ids = [jid for jid, job in self.jobs.items() if job.status in _FINISHED]
        overflow = max(0, len(completed_ids) - self.settings.max_job_records)
        if overflow > 0:
            completed_sorted = sorted(
                completed_ids,
                key=lambda i: self.jobs[i].finished_at or self.jobs[i].created_at,
            )
            for jid in completed_sorted[:overflow]:
                self._forget(jid)

    def _forget(self, job_id: str) -> None:
        self.jobs.pop(job_id, None)
        if remove_tree(self.job_directory(job_id)):
            logger.info("Removed files of expired job %s", job_id)
