"""
Unit tests for continuity frame extraction.
"""

import pytest
from unittest.mock import AsyncMock, patch

from shared.errors import CompositionError
from modules.video_generator.frames import FrameResult, extract_first_frame, extract_last_frame


class TestFrameResult:
    def test_ok(self, tmp_path):
        result = FrameResult.ok(tmp_path / "f.jpg")
        assert result.is_ok
        assert result.reason is None

    def test_degraded(self):
        result = FrameResult.degraded("no frame")
        assert not result.is_ok
        assert result.reason == "no frame"


class TestExtractLastFrame:
    @pytest.mark.asyncio
    async def test_command_seeks_from_end(self, tmp_path):
        output = tmp_path / "last_frame.jpg"

        async def _write(cmd, job_id=None, timeout=None):
            output.write_bytes(b"jpeg")
            return ""

        with patch("modules.video_generator.frames.run_ffmpeg_command", new=AsyncMock(side_effect=_write)) as mock_run:
            result = await extract_last_frame(tmp_path / "clip.mp4", output)

        assert result.is_ok
        assert result.path == output
        cmd = mock_run.await_args.args[0]
        assert cmd[:3] == ["ffmpeg", "-sseof", "-1"]
        assert cmd[cmd.index("-update") + 1] == "1"
        assert cmd[cmd.index("-q:v") + 1] == "2"

    @pytest.mark.asyncio
    async def test_ffmpeg_failure_degrades(self, tmp_path):
        failure = CompositionError("ffmpeg exited with code 1", stderr="moov atom not found")
        with patch("modules.video_generator.frames.run_ffmpeg_command", new=AsyncMock(side_effect=failure)):
            result = await extract_last_frame(tmp_path / "clip.mp4", tmp_path / "last_frame.jpg")

        assert not result.is_ok
        assert "last frame extraction failed" in result.reason

    @pytest.mark.asyncio
    async def test_missing_output_degrades(self, tmp_path):
        with patch("modules.video_generator.frames.run_ffmpeg_command", new=AsyncMock(return_value="")):
            result = await extract_last_frame(tmp_path / "clip.mp4", tmp_path / "last_frame.jpg")

        assert not result.is_ok
        assert "no image" in result.reason


@pytest.mark.asyncio
async def test_first_frame_is_scaled(tmp_path):
    with patch("modules.video_generator.frames.run_ffmpeg_command", new=AsyncMock(return_value="")) as mock_run:
        await extract_first_frame(tmp_path / "clip.mp4", tmp_path / "thumb.jpg")

    cmd = mock_run.await_args.args[0]
    assert "scale=1280:-1" in cmd
    assert cmd[cmd.index("-frames:v") + 1] == "1"
