from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile

from ...config import Settings
from ...exceptions import ValidationError
from ...logging_config import get_logger
from ...services.job_queue import JobQueue
from ...services.video_servers import pick_server
from ..deps import get_app_settings, get_job_queue


router = APIRouter(prefix="/video", tags=["video"])

logger = get_logger(__name__)


def _flag(value: str | None) -> bool:
    return value == "true"


@router.get("/server")
def get_server(request: Request, settings: Settings = Depends(get_app_settings)) -> dict:
    host = request.headers.get("host")
    return {"server": pick_server(settings.video_servers, host)}


@router.post("/upload")
def upload_archive(
    file: UploadFile | None = File(default=None),
    to: str | None = Form(default=None),
    skipS3: str | None = Form(default=None),
    is720p: str | None = Form(default=None),
    noEmail: str | None = Form(default=None),
    job_queue: JobQueue = Depends(get_job_queue),
) -> dict:
    if not to:
        raise HTTPException(status_code=400, detail='Field "to" was not provided')
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="File was not provided")

    logger.info("Archive uploaded", filename=file.filename, skip_upload=skipS3, is720p=is720p)

    archive = file.file.read()
    try:
        job_id = job_queue.place_to_queue(
            archive,
            file.filename,
            to,
            skip_upload=_flag(skipS3),
            # Omitted: resolution follows the intro asset
            low_res=None if is720p is None else _flag(is720p),
            suppress_notification=_flag(noEmail),
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc
    return {"id": job_id}


@router.get("/is-busy")
def is_busy(job_queue: JobQueue = Depends(get_job_queue)) -> dict:
    return {"status": job_queue.is_busy()}


@router.get("/status")
def status(id: str = "", job_queue: JobQueue = Depends(get_job_queue)) -> dict:
    return {"status": job_queue.get_status(id)}


@router.get("/status-all")
def status_all(job_queue: JobQueue = Depends(get_job_queue)) -> dict:
    return {"statuses": [entry.to_dict() for entry in job_queue.get_status_all()]}
