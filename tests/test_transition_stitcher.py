"""
Unit tests for TransitionStitcher.

Tests cover:
- Filter graph construction
- Fold timing (intro beat, audio delay, hold)
- Intermediate bookkeeping and the final move
- Rejection of single clips and failure cleanup
"""

import pytest
from pathlib import Path
from unittest.mock import patch

from course_video_pipeline.exceptions import RenderError, ValidationError
from course_video_pipeline.services.temp_store import TempArtifactStore
from course_video_pipeline.services.transition_stitcher import TransitionStitcher

from conftest import FakeMediaTools


@pytest.fixture
def clips(temp_dir: Path):
    paths = []
    for name in ("intro.mp4", "slide_1.mp4", "slide_2.mp4", "slide_3.mp4"):
        path = temp_dir / name
        path.write_bytes(b"clip")
        paths.append(path)
    return paths


def _filter_graph(args):
    return args[args.index("-filter_complex") + 1]


class TestFilterGraph:
    """Tests for the static filter graph builder."""

    def test_graph_contents(self):
        graph = TransitionStitcher.build_filter_graph(
            transition_start=4.0, crossfade=1.0, audio_delay=1.0, hold=1.0
        )
        assert "fade=t=out:st=4.000:d=1.000:alpha=1" in graph
        assert "fade=t=in:st=0:d=1.000:alpha=1" in graph
        assert "setpts=PTS-STARTPTS+4.000/TB[v1]" in graph
        assert "tpad=stop_mode=clone:stop_duration=0.500[viddelayed]" in graph
        assert "adelay=1000|1000[a1]" in graph
        assert graph.endswith("[0:a][a1]concat=n=2:v=0:a=1[aout]")


class TestStitch:
    """Tests for the crossfade fold."""

    def test_single_clip_rejected_without_encoding(self, test_settings, clips, temp_dir: Path):
        tools = FakeMediaTools()
        stitcher = TransitionStitcher(test_settings, tools=tools)
        store = TempArtifactStore(temp_dir / "work")

        with pytest.raises(ValidationError, match="At least two videos"):
            stitcher.stitch(clips[:1], temp_dir / "out.mp4", store)

        assert tools.calls == []
        assert tools.probed == []

    def test_one_step_per_additional_clip(self, test_settings, clips, temp_dir: Path):
        tools = FakeMediaTools()
        stitcher = TransitionStitcher(test_settings, tools=tools)
        store = TempArtifactStore(temp_dir / "work")
        steps = []

        stitcher.stitch(clips, temp_dir / "out.mp4", store, label="full",
                        on_step=lambda step, total: steps.append((step, total)))

        assert len(tools.calls) == 3
        assert steps == [(1, 3), (2, 3), (3, 3)]
        assert tools.labels[0] == "Crossfade full (1/3)"

    def test_fold_feeds_previous_result(self, test_settings, clips, temp_dir: Path):
        tools = FakeMediaTools()
        stitcher = TransitionStitcher(test_settings, tools=tools)
        store = TempArtifactStore(temp_dir / "work")

        stitcher.stitch(clips, temp_dir / "out.mp4", store)

        first_step, second_step = tools.calls[0], tools.calls[1]
        assert first_step[1] == str(clips[0])
        assert first_step[3] == str(clips[1])
        assert second_step[1] == first_step[-1]
        assert second_step[3] == str(clips[2])

    def test_intro_step_timing(self, test_settings, clips, temp_dir: Path):
        # Running result: 5 s of video, 3 s of audio; intro beat 1 s; crossfade 1 s
        tools = FakeMediaTools(video_duration=5.0, audio_duration=3.0)
        stitcher = TransitionStitcher(test_settings, tools=tools)
        store = TempArtifactStore(temp_dir / "work")

        stitcher.stitch(clips[:2], temp_dir / "out.mp4", store)

        graph = _filter_graph(tools.calls[0])
        assert "fade=t=out:st=5.000" in graph
        assert "adelay=2000|2000" in graph

    def test_slide_step_timing(self, test_settings, clips, temp_dir: Path):
        tools = FakeMediaTools(video_duration=5.0, audio_duration=3.0)
        stitcher = TransitionStitcher(test_settings, tools=tools)
        store = TempArtifactStore(temp_dir / "work")

        stitcher.stitch(clips[:3], temp_dir / "out.mp4", store)

        graph = _filter_graph(tools.calls[1])
        assert "fade=t=out:st=4.000" in graph
        assert "adelay=1000|1000" in graph
        assert "stop_duration=0.500" in graph

    def test_final_output_moved_and_intermediates_tracked(self, test_settings, clips, temp_dir: Path):
        stitcher = TransitionStitcher(test_settings, tools=FakeMediaTools())
        store = TempArtifactStore(temp_dir / "work")
        output = temp_dir / "final" / "out.mp4"

        result = stitcher.stitch(clips, output, store)

        assert result == output
        assert output.exists()
        assert output not in store.paths
        # Two earlier intermediates remain for cleanup; the last one was moved
        assert len(store.paths) == 2
        store.cleanup()
        assert output.exists()
        assert all(not path.exists() for path in store.paths)

    def test_inputs_are_not_deleted(self, test_settings, clips, temp_dir: Path):
        stitcher = TransitionStitcher(test_settings, tools=FakeMediaTools())
        store = TempArtifactStore(temp_dir / "work")
        stitcher.stitch(clips, temp_dir / "out.mp4", store)
        store.cleanup()
        assert all(path.exists() for path in clips)

    def test_failed_step_leaves_intermediates_tracked(self, test_settings, clips, temp_dir: Path):
        tools = FakeMediaTools(fail_on="(2/3)")
        stitcher = TransitionStitcher(test_settings, tools=tools)
        store = TempArtifactStore(temp_dir / "work")

        with pytest.raises(RenderError):
            stitcher.stitch(clips, temp_dir / "out.mp4", store)

        assert not (temp_dir / "out.mp4").exists()
        written = [path for path in store.paths if path.exists()]
        assert len(written) == 1
        store.cleanup()
        assert not written[0].exists()

    def test_non_positive_crossfade_rejected(self, test_settings, clips, temp_dir: Path):
        stitcher = TransitionStitcher(test_settings, tools=FakeMediaTools())
        with pytest.raises(ValidationError):
            stitcher.stitch(clips, temp_dir / "out.mp4", TempArtifactStore(temp_dir), crossfade=0)

    def test_failed_final_move_leaves_work_dir_empty(self, test_settings, clips, temp_dir: Path):
        stitcher = TransitionStitcher(test_settings, tools=FakeMediaTools())
        work_dir = temp_dir / "work"
        store = TempArtifactStore(work_dir)

        with patch("course_video_pipeline.services.transition_stitcher.move_file",
                   side_effect=OSError("cross-device link")):
            with pytest.raises(OSError):
                stitcher.stitch(clips, temp_dir / "out.mp4", store)

        assert len(store.paths) == 3
        store.cleanup()
        assert list(work_dir.iterdir()) == []
