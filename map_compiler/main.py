"""
Map Compile Microservice: FastAPI entry point.

Endpoints:
  POST /run          Sync compile (submit + wait)
  POST /jobs         Async job submission
  GET  /jobs/{id}    Job status
  GET  /jobs/{id}/result   Final result
  GET  /jobs/{id}/artifacts/{name}  Download a copied byproduct
  DELETE /jobs/{id}  Cancel queued job
  GET  /health       Service health check
  GET  /tool/schema  Tool schema for registry
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from compiler_shared.files import ensure_dir
from compiler_shared.logging import configure_logging

from .config import settings
from .job_manager import CompileJobManager
from .schemas import (
    AsyncJobAccepted,
    CompileJobStatus,
    CompileRequest,
    CompileResult,
    JobRecordView,
)

configure_logging(settings.log_level)
logger = logging.getLogger("map_compile.main")


# ---------------------------------------------------------------------------
# Job manager (singleton)
# ---------------------------------------------------------------------------

jobs = CompileJobManager(settings)


# ---------------------------------------------------------------------------
# Auth helper
# ---------------------------------------------------------------------------

def _require_api_key(x_api_key: str | None) -> None:
    if settings.api_key and x_api_key != settings.api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


async def _submit(request: CompileRequest):
    try:
        return await jobs.submit(request)
    except RuntimeError as e:
        raise HTTPException(status_code=503 if "full" in str(e) else 409, detail=str(e))


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_dir(settings.uploads_dir)
    await jobs.startup()
    yield
    await jobs.shutdown()


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Map Compile Tool Service",
    version="1.0.0",
    description=(
        "Compiles Goldsource map sources to BSP by running the configured "
        "CSG/BSP/VIS/RAD tools in a throwaway working directory, validating "
        "the output from the files the tools leave behind, and copying the "
        "results and diagnostic byproducts back."
    ),
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/")
async def root():
    return {
        "service": settings.service_name,
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "service": settings.service_name,
        "queue_size": jobs.queue.qsize(),
        "active_jobs": sum(
            1 for x in jobs.jobs.values()
            if x.status in {CompileJobStatus.queued, CompileJobStatus.running}
        ),
        "environment": settings.environment.name,
        "tools_exist": settings.tool_status(),
        "max_concurrent_jobs": settings.max_concurrent_jobs,
    }


@app.get("/tool/schema")
async def tool_schema():
    return {
        "name": "map-compile",
        "description": (
            "Compiles a Goldsource .map source with the configured compile "
            "tools and reports success plus the compile log."
        ),
        "input_schema": CompileRequest.model_json_schema(),
        "output_schema": CompileResult.model_json_schema(),
    }


# ---------------------------------------------------------------------------
# POST /run: sync endpoint
# ---------------------------------------------------------------------------

@app.post("/run")
async def run_sync(request: CompileRequest, x_api_key: str | None = Header(default=None)):
    _require_api_key(x_api_key)

    record = await _submit(request)
    try:
        finished = await jobs.wait_for_completion(
            record.id, timeout_seconds=settings.sync_wait_timeout_seconds,
        )
    except RuntimeError as e:
        raise HTTPException(status_code=504, detail=str(e))

    if finished.status == CompileJobStatus.succeeded and finished.result:
        return finished.result.model_dump()

    if finished.status == CompileJobStatus.cancelled:
        raise HTTPException(status_code=409, detail="Job cancelled")

    error = finished.error or {"message": "Unknown compile error", "status_code": 500}
    if finished.result is not None:
        # Compile ran but failed: hand back the log along with the error.
        return JSONResponse(
            status_code=int(error.get("status_code", 422)),
            content={"detail": error.get("message"), "result": finished.result.model_dump()},
        )
    raise HTTPException(
        status_code=int(error.get("status_code", 500)),
        detail=error.get("message", "Compile failed"),
    )


# ---------------------------------------------------------------------------
# POST /jobs: async job submission
# ---------------------------------------------------------------------------

@app.post("/jobs", response_model=AsyncJobAccepted)
async def enqueue_job(request: CompileRequest, x_api_key: str | None = Header(default=None)):
    _require_api_key(x_api_key)
    record = await _submit(request)

    return AsyncJobAccepted(
        job_id=record.id,
        status=record.status,
        status_url=f"/jobs/{record.id}",
        result_url=f"/jobs/{record.id}/result",
    )


@app.get("/jobs/{job_id}", response_model=JobRecordView)
async def get_job(job_id: str, x_api_key: str | None = Header(default=None)):
    _require_api_key(x_api_key)
    try:
        record = await jobs.get(job_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    return record.as_view()


@app.get("/jobs/{job_id}/result")
async def get_job_result(job_id: str, x_api_key: str | None = Header(default=None)):
    _require_api_key(x_api_key)
    try:
        record = await jobs.get(job_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")

    if record.status == CompileJobStatus.queued:
        return {"status": "queued", "progress": record.progress}
    if record.status == CompileJobStatus.running:
        return {"status": "running", "progress": record.progress, "detail": record.detail}
    if record.status == CompileJobStatus.cancelled:
        return {"status": "cancelled"}
    if record.status == CompileJobStatus.failed:
        return {
            "status": "failed",
            "error": (record.error or {}).get("message", "unknown error"),
            "result": record.result.model_dump() if record.result else None,
        }
    return {
        "status": "succeeded",
        "result": record.result.model_dump() if record.result else None,
    }


# ---------------------------------------------------------------------------
# GET /jobs/{id}/artifacts/{name}: byproducts copied next to the source
# ---------------------------------------------------------------------------

@app.get("/jobs/{job_id}/artifacts/{file_name}")
async def get_job_artifact(job_id: str, file_name: str, x_api_key: str | None = Header(default=None)):
    _require_api_key(x_api_key)
    path = jobs.artifact_path(job_id, file_name)
    if path is None:
        raise HTTPException(status_code=404, detail=f"Artifact not found: {file_name}")
    return FileResponse(str(path), filename=path.name)


@app.delete("/jobs/{job_id}")
async def cancel_job(job_id: str, x_api_key: str | None = Header(default=None)):
    _require_api_key(x_api_key)
    try:
        record = await jobs.cancel(job_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
    except RuntimeError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"success": True, "job_id": job_id, "status": record.status}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "map_compiler.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=bool(int(os.getenv("UVICORN_RELOAD", "0"))),
    )
