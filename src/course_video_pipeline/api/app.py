from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ..config import Settings, create_directories, get_settings
from ..services.job_queue import JobQueue
from .routers import video as video_router


def create_app(settings: Optional[Settings] = None, job_queue: Optional[JobQueue] = None) -> FastAPI:
    settings = settings or get_settings()
    create_directories(settings)
    job_queue = job_queue or JobQueue(settings)

    app = FastAPI(title="Course Video Pipeline", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.job_queue = job_queue

    app.include_router(video_router.router)

    job_queue.start()
    return app
