"""FastAPI web interface for bookify."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import FileResponse, JSONResponse, RedirectResponse
from pydantic import BaseModel
from sse_starlette.sse import EventSourceResponse

from bookify import __version__, config
from bookify.models import JobState, JobStatus
from bookify.service import BookService, CancelResult, SaveOutcome

logger = logging.getLogger(__name__)


# --- Pydantic models ---

class BookRequest(BaseModel):
    url: str
    title: Optional[str] = None


def _status_payload(status: JobStatus) -> dict:
    payload = status.to_dict()
    payload.pop("outputFilePath", None)
    payload["progress"] = status.progress_percent
    payload["isCompleted"] = status.state == JobState.COMPLETED
    payload["isFailed"] = status.state == JobState.FAILED
    payload["canDownload"] = status.state == JobState.COMPLETED and bool(status.output_file_path)
    return payload


def _pending_message(status: JobStatus) -> str:
    if status.pages_total == 0:
        if status.state == JobState.RUNNING:
            return "Discovering pages and analyzing site structure..."
        if status.state == JobState.PENDING:
            return "Job is queued and will start shortly..."
        return "Job is starting..."
    remaining = status.pages_total - status.pages_rendered
    return (
        f"Processing: {status.pages_rendered} of {status.pages_total} pages rendered "
        f"({remaining} remaining)"
    )


def _not_found(job_id: str) -> JSONResponse:
    return JSONResponse({"error": "Job not found", "jobId": job_id}, status_code=404)


# --- App factory ---

def create_app(
    temp_dir: Optional[str] = None,
    service: Optional[BookService] = None,
) -> FastAPI:
    app = FastAPI(
        title="bookify",
        version=__version__,
        description="API for converting documentation websites to PDF books",
    )
    if service is None:
        temp_root = Path(temp_dir).resolve() if temp_dir else config.TEMP_ROOT
        service = BookService(temp_root=temp_root)
    app.state.service = service

    # --- Routes ---

    @app.get("/", include_in_schema=False)
    async def index():
        return RedirectResponse("/docs")

    @app.post("/api/books")
    async def create_book(req: BookRequest):
        if not req.url.strip():
            raise HTTPException(400, detail="URL is required")
        job_id = service.create_job(req.url, req.title)
        return {"jobId": job_id}

    @app.get("/api/books")
    async def list_books():
        jobs = [status.to_dict() for status in service.list_jobs()]
        return {"jobs": jobs, "count": len(jobs)}

    @app.get("/api/books/{job_id}")
    async def get_book_status(job_id: str):
        status = service.get_status(job_id)
        if status is None:
            return _not_found(job_id)
        return _status_payload(status)

    @app.get("/api/books/{job_id}/progress")
    async def progress_stream(job_id: str):
        if service.get_status(job_id) is None:
            raise HTTPException(404, detail="Job not found")

        async def event_generator():
            last = None
            while True:
                status = service.get_status(job_id)
                if status is None:
                    break

                if status != last:
                    last = status
                    yield {"event": "progress", "data": json.dumps(_status_payload(status))}

                if status.state == JobState.COMPLETED:
                    yield {"event": "done", "data": json.dumps({"state": status.state.value})}
                    break

                if status.state == JobState.FAILED:
                    yield {
                        "event": "error",
                        "data": json.dumps({
                            "state": status.state.value,
                            "error": status.error_message or "Unknown error occurred",
                        }),
                    }
                    break

                await asyncio.sleep(0.5)

        return EventSourceResponse(event_generator())

    @app.get("/api/books/{job_id}/file")
    async def download_book(job_id: str):
        status = service.get_status(job_id)
        if status is None:
            return _not_found(job_id)

        if status.state == JobState.FAILED:
            return JSONResponse(
                {
                    "error": "Job failed",
                    "jobId": job_id,
                    "message": status.error_message or "Unknown error occurred",
                },
                status_code=400,
            )

        if status.state != JobState.COMPLETED:
            return JSONResponse(
                {
                    "error": "Job is not completed yet",
                    "jobId": job_id,
                    "state": status.state.value,
                    "progress": f"{status.progress_percent}%",
                    "pagesRendered": status.pages_rendered,
                    "pagesTotal": status.pages_total,
                    "message": _pending_message(status),
                },
                status_code=400,
            )

        if not status.output_file_path:
            return JSONResponse({"error": "Output file path is missing", "jobId": job_id}, status_code=400)

        output = Path(status.output_file_path)
        if not output.exists():
            return JSONResponse({"error": "PDF file not found", "jobId": job_id}, status_code=404)

        return FileResponse(str(output), filename=output.name, media_type="application/pdf")

    @app.post("/api/books/{job_id}/cancel")
    async def cancel_book(job_id: str):
        result = service.cancel(job_id)
        if result == CancelResult.NOT_FOUND:
            return _not_found(job_id)
        if result == CancelResult.ALREADY_FINISHED:
            status = service.get_status(job_id)
            return JSONResponse(
                {"error": "Job is already finished", "jobId": job_id, "state": status.state.value if status else None},
                status_code=400,
            )
        if result == CancelResult.CANNOT_CANCEL:
            return JSONResponse(
                {
                    "error": "Job cannot be canceled",
                    "jobId": job_id,
                    "message": "Job may have already been canceled or is not running",
                },
                status_code=400,
            )
        return {"message": "Job canceled successfully", "jobId": job_id}

    @app.post("/api/books/{job_id}/cancel-and-save")
    async def cancel_and_save_book(job_id: str):
        # Blocks while in-flight renders wind down
        result = await asyncio.to_thread(service.cancel_and_save, job_id)
        if result.outcome == SaveOutcome.NOT_FOUND:
            return _not_found(job_id)
        if result.outcome != SaveOutcome.OK:
            return JSONResponse(
                {"error": result.outcome.value, "jobId": job_id, "message": result.message},
                status_code=400,
            )
        return {
            "message": result.message,
            "jobId": job_id,
            "pagesRendered": result.pages_rendered,
            "pagesTotal": result.pages_total,
            "outputFilePath": result.output_path,
        }

    @app.delete("/api/books/{job_id}")
    async def delete_book(job_id: str):
        if not service.remove_job(job_id, delete_files=True):
            return _not_found(job_id)
        return {"message": "Job removed", "jobId": job_id}

    return app


# --- CLI entry point ---

def main():
    """Run the bookify web server."""
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="bookify web interface")
    parser.add_argument("--host", default="127.0.0.1", help="Host (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Porta (default: 8000)")
    parser.add_argument("--temp-dir", default=None, help="Directory per i file di lavoro dei job")
    parser.add_argument("--verbose", action="store_true", help="Abilita log dettagliati")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    app = create_app(temp_dir=args.temp_dir)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
