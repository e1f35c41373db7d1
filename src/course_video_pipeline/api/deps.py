from __future__ import annotations

from fastapi import Request

from ..config import Settings
from ..services.job_queue import JobQueue


def get_job_queue(request: Request) -> JobQueue:
    return request.app.state.job_queue


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings
