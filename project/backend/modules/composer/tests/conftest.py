"""
Pytest configuration and fixtures for composer tests.
"""

from pathlib import Path

import pytest
from unittest.mock import AsyncMock, patch

from shared import asset_keys


async def _write_output(cmd, job_id=None, timeout=None):
    """Stand-in for ffmpeg: create the output file named last on the command line."""
    Path(cmd[-1]).write_bytes(b"ffmpeg output")
    return ""


@pytest.fixture
def ffmpeg():
    """Patch every ffmpeg/ffprobe call made by the composer."""
    with patch("modules.composer.process.run_ffmpeg_command", new=AsyncMock(side_effect=_write_output)) as compose_run, \
            patch("modules.composer.audio_syncer.run_ffmpeg_command", new=AsyncMock(side_effect=_write_output)) as mux_run, \
            patch("modules.composer.process.probe_duration", new=AsyncMock(return_value=15.0)) as duration, \
            patch("modules.composer.process.probe_dimensions", new=AsyncMock(return_value=(1920, 1080))) as dimensions:
        yield {
            "compose": compose_run,
            "mux": mux_run,
            "duration": duration,
            "dimensions": dimensions,
        }


@pytest.fixture
async def stored_job(make_job, make_script, asset_store, tmp_path):
    """A job whose three scene clips are already in the asset store."""
    job = make_job()
    job.scenes = make_script(3).scenes
    for scene in job.scenes:
        n = scene.scene_number
        src = tmp_path / f"src-{n}.mp4"
        src.write_bytes(f"clip {n}".encode())
        url = await asset_store.put(asset_keys.clip_key(job.user_id, job.id, n), src, "video/mp4")
        job.scene_video_urls.append(url)
    return job


@pytest.fixture
def store_audio(asset_store, tmp_path):
    """Put narration and/or music for a job into the asset store and record their URLs."""
    async def _store(job, narration=True, music=True):
        src = tmp_path / "audio.mp3"
        src.write_bytes(b"mp3")
        if narration:
            job.narrator_audio_url = await asset_store.put(
                asset_keys.narration_key(job.user_id, job.id), src, "audio/mpeg"
            )
        if music:
            job.audio_url = await asset_store.put(asset_keys.music_key(job.user_id, job.id), src, "audio/mpeg")
        return job

    return _store
