"""
Pytest configuration and fixtures for clip regenerator tests.
"""

import pytest
from unittest.mock import AsyncMock, patch

from shared import asset_keys


@pytest.fixture
def compose_mock():
    """Replace recomposition with a mock returning a stored final video."""
    from modules.composer.process import CompositionResult

    async def _compose(job, asset_store, mode=None):
        key = asset_keys.final_video_key(job.user_id, job.id)
        return CompositionResult(video_key=key, video_url=f"https://cdn.test/{key}", mode=mode or "separate")

    with patch("modules.clip_regenerator.process.composer_process", new=AsyncMock(side_effect=_compose)) as mock:
        yield mock


@pytest.fixture
def stored_job_factory(make_job, make_script, job_store, asset_store, tmp_path):
    """
    Create a job with n scenes in the job store.

    The first `clips` scenes get a stored clip and last frame at their
    unversioned keys, as a first pipeline run leaves them.
    """
    async def _create(n=4, clips=None, status="completed", **kwargs):
        clips = n if clips is None else clips
        job = make_job(status=status, **kwargs)
        job.scenes = make_script(n).scenes
        job.composition_mode = "separate"
        for i in range(1, clips + 1):
            clip = tmp_path / f"clip-{i}.mp4"
            clip.write_bytes(f"clip {i}".encode())
            frame = tmp_path / f"frame-{i}.jpg"
            frame.write_bytes(f"frame {i}".encode())
            url = await asset_store.put(asset_keys.clip_key(job.user_id, job.id, i), clip, "video/mp4")
            await asset_store.put(asset_keys.frame_key(job.user_id, job.id, i), frame, "image/jpeg")
            job.scene_video_urls.append(url)
        await job_store.create(job)
        return job

    return _create


@pytest.fixture
def controller_factory(job_store, asset_store, scripted_provider, media_stubs):
    """Build a RegenerationController over a ScriptedProvider."""
    from modules.clip_regenerator import RegenerationController
    from modules.video_generator.renderer import SceneRenderer

    def _create(is_active=None, **provider_kwargs):
        provider = scripted_provider(**provider_kwargs)
        renderer = SceneRenderer(provider, asset_store, poll_interval=0)
        controller = RegenerationController(job_store, asset_store, renderer, is_active=is_active)
        controller.provider = provider
        return controller

    return _create
