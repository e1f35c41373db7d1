"""Join an intro and slide clips into one video with crossfade transitions.

The clips are folded left to right. Each step overlays the next clip on the
running result, fading it in over the last ``crossfade`` seconds of the
running result, and appends the next clip's audio right where its picture
starts. The last intermediate is then moved to the final output path.

Timing of one step, with ``V``/``A`` the video/audio length of the running
result and ``d`` the crossfade duration::

    transition_start = V (+ intro beat on the first step) - d
    audio_delay      = transition_start - A    # equals pause - d for slides

Slide clips carry ``pause`` seconds of still picture after their narration,
so their audio is always ``pause`` shorter than their video; the delay
re-aligns the next narration with its picture.
"""

from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..config import get_settings
from ..exceptions import RenderError, ValidationError
from ..logging_config import LoggerMixin
from ..utils.file_utils import move_file
from .media_tools import MediaTools
from .temp_store import TempArtifactStore

# (completed steps, total steps)
StepCallback = Callable[[int, int], None]


class TransitionStitcher(LoggerMixin):
    """Crossfade an ordered list of clips into a single video."""

    def __init__(self, settings=None, tools: Optional[MediaTools] = None):
        self.settings = settings or get_settings()
        self.tools = tools or MediaTools(self.settings)
        self.pause = self.settings.slide_pause
        self.intro_extra = self.settings.intro_extra_duration
        self.video_codec = self.settings.video_codec
        self.audio_codec = self.settings.audio_codec

    def stitch(
        self,
        clips: Sequence[Path],
        output_path: Path,
        store: TempArtifactStore,
        crossfade: Optional[float] = None,
        label: str = "stitch",
        on_step: Optional[StepCallback] = None,
    ) -> Path:
        """Fold ``clips`` (intro first) into ``output_path``.

        Every intermediate is allocated from ``store`` so it is removed with
        the rest of the run, including when a later step fails.

        Raises:
            ValidationError: If fewer than two clips are given
            RenderError: If any crossfade step fails
        """
        if len(clips) < 2:
            raise ValidationError("At least two videos are required to create crossfade effect")

        crossfade = self.settings.crossfade_duration if crossfade is None else crossfade
        if crossfade <= 0:
            raise ValidationError("Crossfade duration must be positive")

        total = len(clips) - 1
        previous = Path(clips[0])

        for index in range(1, len(clips)):
            step_output = store.allocate(f"{label}_crossfade_{index}", suffix=".mp4")
            self._crossfade(
                first=previous,
                second=Path(clips[index]),
                output=step_output,
                crossfade=crossfade,
                is_intro=index == 1,
                step=index,
                total=total,
                label=label,
            )
            previous = step_output
            if on_step:
                on_step(index, total)

        # Stays tracked until the move lands, so a failed move is still cleaned up
        final = move_file(previous, output_path)
        store.release(previous)
        self.logger.info("Crossfade video created", label=label, output=str(final), clips=len(clips))
        return final

    # ---------------------------
    # Internal: one fold step
    # ---------------------------

    def _crossfade(
        self,
        first: Path,
        second: Path,
        output: Path,
        crossfade: float,
        is_intro: bool,
        step: int,
        total: int,
        label: str,
    ) -> Path:
        info = self.tools.probe(first)
        video_duration = info.video_duration or info.duration
        if not video_duration:
            raise RenderError(f"Error getting video duration: {first.name}")
        audio_duration = info.audio_duration or video_duration

        effective = video_duration + (self.intro_extra if is_intro else 0.0)
        transition_start = max(0.0, effective - crossfade)
        audio_delay = max(0.0, transition_start - audio_duration)
        hold = max(0.0, self.pause - crossfade)

        filter_graph = self.build_filter_graph(transition_start, crossfade, audio_delay, hold)
        args = [
            "-i", str(first),
            "-i", str(second),
            "-filter_complex", filter_graph,
            "-map", "[viddelayed]",
            "-map", "[aout]",
            "-c:v", self.video_codec,
            "-c:a", self.audio_codec,
            "-movflags", "+faststart",
            "-y", str(output),
        ]
        self.tools.run(args, label=f"Crossfade {label} ({step}/{total})")

        if not output.exists():
            raise RenderError(f"Crossfade output was not created: {output}")

        self.logger.debug(
            "Crossfade step finished",
            label=label,
            step=f"{step}/{total}",
            transition_start=round(transition_start, 3),
            audio_delay=round(audio_delay, 3),
        )
        return output

    @staticmethod
    def build_filter_graph(transition_start: float, crossfade: float,
                           audio_delay: float, hold: float) -> str:
        """ffmpeg filter graph for one crossfade step."""
        delay_ms = int(round(audio_delay * 1000))
        parts: List[str] = [
            # Video crossfade
            f"[0:v]format=pix_fmts=yuva420p,"
            f"fade=t=out:st={transition_start:.3f}:d={crossfade:.3f}:alpha=1,"
            f"setpts=PTS-STARTPTS[v0]",
            f"[1:v]format=pix_fmts=yuva420p,"
            f"fade=t=in:st=0:d={crossfade:.3f}:alpha=1,"
            f"setpts=PTS-STARTPTS+{transition_start:.3f}/TB[v1]",
            "[v0][v1]overlay,format=yuv420p[vid]",
            # Hold the last frame so the closing narration is not clipped
            f"[vid]tpad=stop_mode=clone:stop_duration={hold / 2:.3f}[viddelayed]",
            # Audio delay and concat
            f"[1:a]adelay={delay_ms}|{delay_ms}[a1]",
            "[0:a][a1]concat=n=2:v=0:a=1[aout]",
        ]
        return ";".join(parts)
