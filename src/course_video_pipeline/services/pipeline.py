"""
Pipeline orchestration for course video generation.

One run turns a submission into two finished videos:
1. Archive Ingestion (unpack, order and pair images/audios)
2. Slide Rendering (one clip per image/audio pair)
3. Full Stitch (intro + every slide, crossfaded)
4. Short Stitch (intro + the first slides, crossfaded)
5. Upload (optional, both videos to object storage)

Progress is reported through a ProgressCallback: 0-50% while slides are
rendered, 50-99% while the two videos are stitched, then the upload
messages. Every intermediate file is deleted when the run ends, whether it
succeeded or not.
"""

import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..config import get_settings
from ..exceptions import RenderError, VideoPipelineError
from ..logging_config import LoggerMixin
from ..models import PipelineResult, ResolutionProfile, Submission
from ..utils.file_utils import ensure_directory, escape_file_name, remove_files
from .archive_ingestor import ArchiveIngestor
from .media_tools import MediaTools
from .slide_renderer import SlideRenderer
from .storage import S3Storage
from .temp_store import TempArtifactStore
from .transition_stitcher import TransitionStitcher


# Share of the progress bar used by each phase
RENDER_SHARE = 50
STITCH_SHARE = 49

STATUS_UPLOAD_START = "Video processing completed. Starting upload..."
STATUS_UPLOAD_DONE = "Upload completed."


class ProgressCallback:
    """Progress callback interface for pipeline status updates."""

    def on_status(self, status: str) -> None:
        """Called with every human-readable status line of the run."""
        pass

    def on_stage_complete(self, stage_name: str, output_info: Dict[str, Any]) -> None:
        """Called when a pipeline stage completes."""
        pass


class _ProgressTracker:
    """Publish ``Generation progress: N%`` lines that never go backwards."""

    def __init__(self, callback: ProgressCallback):
        self.callback = callback
        self.percent = -1

    def publish(self, percent: float) -> None:
        value = max(0, min(99, int(percent)))
        if value <= self.percent:
            return
        self.percent = value
        self.callback.on_status(f"Generation progress: {value}%")


def output_names(name: str, created_at: datetime) -> Tuple[str, str]:
    """File names of the full and short videos for one submission."""
    stamp = created_at.strftime("%Y-%m-%dT%H:%M:%S")
    return (
        escape_file_name(f"{stamp}_full_{name}.mp4"),
        escape_file_name(f"{stamp}_short_{name}.mp4"),
    )


class VideoGenerationPipeline(LoggerMixin):
    """
    Turn one submission into a full and a short course video.

    Coordinates the ingestor, slide renderer, transition stitcher and
    storage, and owns the temporary files of the run.
    """

    def __init__(
        self,
        settings=None,
        tools: Optional[MediaTools] = None,
        storage: Optional[S3Storage] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            settings: Optional settings object (uses default if not provided)
            tools: ffmpeg/ffprobe wrapper shared by every stage
            storage: Upload target for finished videos
        """
        self.settings = settings or get_settings()
        self.tools = tools or MediaTools(self.settings)
        self.storage = storage or S3Storage(self.settings)

        self.ingestor = ArchiveIngestor()
        self.slide_renderer = SlideRenderer(self.settings, tools=self.tools)
        self.stitcher = TransitionStitcher(self.settings, tools=self.tools)

    # ---------------------------
    # Run
    # ---------------------------

    def run(
        self,
        submission: Submission,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> PipelineResult:
        """
        Process one submission end to end.

        Args:
            submission: The queued archive and its flags
            progress_callback: Receives status lines while the run progresses

        Returns:
            PipelineResult describing the finished videos

        Raises:
            VideoPipelineError: The first failure of any stage, with the job id attached
        """
        callback = progress_callback or ProgressCallback()
        tracker = _ProgressTracker(callback)
        job_id = submission.job_id
        start = time.monotonic()

        output_dir = ensure_directory(self.settings.output_dir)
        full_name, short_name = output_names(submission.name, submission.created_at)
        output_full = output_dir / full_name
        output_short = output_dir / short_name

        self.logger.info(
            "Starting video generation",
            job_id=job_id,
            name=submission.name,
            skip_upload=submission.skip_upload,
            low_res=submission.low_res,
        )

        store = TempArtifactStore(self.settings.work_dir, prefix=job_id)
        try:
            tracker.publish(0)

            # Stage 1: Archive Ingestion
            media = self.ingestor.ingest(submission.payload, store).media
            callback.on_stage_complete("archive_ingestion", {"slides": len(media)})
            self.logger.info(
                "Handling archive",
                job_id=job_id,
                images=len(media.images),
                audios=len(media.audios),
            )

            resolution = self.select_resolution(submission.low_res)
            intro = self.settings.intro_for(resolution.is_low_res)
            if not Path(intro).exists():
                raise RenderError(f"Intro video not found: {intro}")

            # Stage 2: Slide Rendering
            slide_clips = self._render_slides(media.slides, resolution, store, tracker)
            callback.on_stage_complete("slide_rendering", {"clips": len(slide_clips)})

            # Stages 3-4: Full and Short Stitch
            short_count = min(self.settings.short_slide_count, len(slide_clips))
            total_steps = len(slide_clips) + short_count

            def stitch_progress(offset: int):
                def on_step(step: int, _total: int) -> None:
                    tracker.publish(RENDER_SHARE + STITCH_SHARE * (offset + step) / total_steps)
                return on_step

            # Final outputs are owned by the run until it succeeds
            store.track(output_full)
            store.track(output_short)

            self.stitcher.stitch(
                [intro, *slide_clips],
                output_full,
                store,
                label="full",
                on_step=stitch_progress(0),
            )
            self.stitcher.stitch(
                [intro, *slide_clips[:short_count]],
                output_short,
                store,
                label="short",
                on_step=stitch_progress(len(slide_clips)),
            )
            callback.on_stage_complete(
                "stitching",
                {"full": str(output_full), "short": str(output_short)},
            )

            # Stage 5: Upload
            callback.on_status(STATUS_UPLOAD_START)
            full_key = self.remote_key(full_name)
            short_key = self.remote_key(short_name)
            uploaded = False
            if not submission.skip_upload:
                uploaded = self._upload(output_full, output_short, full_key, short_key, callback)
            callback.on_status(STATUS_UPLOAD_DONE)

            store.release(output_full)
            store.release(output_short)
            if uploaded and not self.settings.keep_outputs_after_upload:
                remove_files([output_full, output_short])

            total_time = time.monotonic() - start
            self.logger.info(
                "Video generation finished",
                job_id=job_id,
                resolution=resolution.value,
                uploaded=uploaded,
                total_time=f"{total_time:.1f}s",
            )
            return PipelineResult(
                submission=submission,
                image_names=list(media.image_names),
                audio_names=list(media.audio_names),
                output_full=output_full,
                output_short=output_short,
                full_video_path=full_key,
                short_video_path=short_key,
                resolution=resolution,
                total_time=total_time,
                uploaded=uploaded,
                slide_clips=slide_clips,
            )

        except VideoPipelineError as e:
            if e.job_id is None:
                e.job_id = job_id
            self.logger.error("Video generation failed", job_id=job_id, error=e.message)
            raise
        except Exception as e:
            self.logger.error("Video generation failed unexpectedly", job_id=job_id, error=str(e))
            raise VideoPipelineError(str(e), job_id=job_id) from e
        finally:
            store.cleanup()

    # ---------------------------
    # Helpers
    # ---------------------------

    def select_resolution(self, low_res: Optional[bool]) -> ResolutionProfile:
        """Explicit flag wins; otherwise follow the frame height of the intro."""
        if low_res is not None:
            return ResolutionProfile.HD_720 if low_res else ResolutionProfile.FULL_HD_1080
        info = self.tools.probe(self.settings.intro_path)
        resolution = ResolutionProfile.from_height(info.height)
        self.logger.debug("Resolution detected from intro", height=info.height, resolution=resolution.value)
        return resolution

    def remote_key(self, file_name: str) -> str:
        prefix = self.settings.storage_key_prefix.strip("/")
        return f"{prefix}/{file_name}" if prefix else file_name

    def _render_slides(
        self,
        slides: List[Tuple[Path, Path]],
        resolution: ResolutionProfile,
        store: TempArtifactStore,
        tracker: _ProgressTracker,
    ) -> List[Path]:
        clips: List[Path] = []
        total = len(slides)
        for index, (image, audio) in enumerate(slides, start=1):
            clip = store.allocate(f"slide_{index}", suffix=".mp4")
            self.slide_renderer.render(image, audio, clip, resolution)
            clips.append(clip)
            tracker.publish(RENDER_SHARE * index / total)
        return clips

    def _upload(
        self,
        output_full: Path,
        output_short: Path,
        full_key: str,
        short_key: str,
        callback: ProgressCallback,
    ) -> bool:
        full_ok = self.storage.upload(
            output_full,
            full_key,
            on_progress=lambda percent: callback.on_status(f"Upload full progress: {percent}%"),
        )
        short_ok = self.storage.upload(
            output_short,
            short_key,
            on_progress=lambda percent: callback.on_status(f"Upload short progress: {percent}%"),
        )
        if not (full_ok and short_ok):
            self.logger.warning(
                "Videos kept locally, upload incomplete",
                full=str(output_full),
                short=str(output_short),
            )
        return full_ok and short_ok
