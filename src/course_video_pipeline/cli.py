"""
Command line entry point.

Usage:
    course-video-pipeline serve [--host 0.0.0.0] [--port 3000]
    course-video-pipeline render lesson.zip --to someone@example.com [--skip-upload] [--low-res|--high-res] [--no-email]
"""

import argparse
import sys
import time
from pathlib import Path
from typing import List, Optional

from .config import create_directories, get_settings
from .exceptions import ValidationError
from .logging_config import setup_logging
from .models import JobStatusEnum
from .services.job_queue import JobQueue

POLL_INTERVAL = 1.0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build course videos from image/audio archives")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Start the HTTP service")
    serve.add_argument("--host", default=None, help="Bind address (default from settings)")
    serve.add_argument("--port", type=int, default=None, help="Port (default from settings)")

    render = subparsers.add_parser("render", help="Render one archive and wait for the result")
    render.add_argument("archive", type=Path, help="Zip archive of numbered images and audios")
    render.add_argument("--to", required=True, help="Address notified when the job ends")
    render.add_argument("--skip-upload", action="store_true", help="Keep the videos local")
    resolution = render.add_mutually_exclusive_group()
    resolution.add_argument("--low-res", dest="low_res", action="store_true", default=None, help="Render 720p")
    resolution.add_argument("--high-res", dest="low_res", action="store_false", help="Render 1080p")
    render.add_argument("--no-email", action="store_true", help="Do not send the notification email")
    render.set_defaults(low_res=None)

    return parser.parse_args(argv)


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .api import create_app

    settings = get_settings()
    app = create_app(settings)
    uvicorn.run(
        app,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def render(args: argparse.Namespace) -> int:
    settings = get_settings()
    if not args.archive.exists():
        print(f"Archive not found: {args.archive}", file=sys.stderr)
        return 2

    queue = JobQueue(settings)
    queue.start()
    try:
        job_id = queue.place_to_queue(
            args.archive.read_bytes(),
            args.archive.name,
            args.to,
            skip_upload=args.skip_upload,
            low_res=args.low_res,
            suppress_notification=args.no_email,
        )
    except ValidationError as e:
        print(f"Invalid archive: {e.message}", file=sys.stderr)
        queue.stop()
        return 2

    print(f"Submitted job: {job_id}", flush=True)

    last_status = None
    while not queue.wait_until_idle(timeout=POLL_INTERVAL):
        status = queue.get_status(job_id)
        if status != last_status:
            print(f"[{job_id}] {status}", flush=True)
            last_status = status
    queue.stop()

    status = queue.get_status(job_id)
    print(f"[{job_id}] {status}", flush=True)
    return 0 if queue.get_state(job_id) is JobStatusEnum.COMPLETED else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    create_directories(settings)
    setup_logging(settings)

    if args.command == "serve":
        return serve(args)
    return render(args)


if __name__ == "__main__":
    sys.exit(main())
