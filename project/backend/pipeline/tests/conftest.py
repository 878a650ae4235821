"""
Pytest configuration and fixtures for pipeline tests.
"""

import pytest
from unittest.mock import AsyncMock, patch


@pytest.fixture
def compose_mock():
    """Replace final composition with a mock that reports a stored video."""
    from shared import asset_keys
    from modules.composer.process import CompositionResult

    async def _compose(job, asset_store, mode=None):
        key = asset_keys.final_video_key(job.user_id, job.id)
        return CompositionResult(video_key=key, video_url=f"https://cdn.test/{key}", mode=mode or "separate")

    with patch("pipeline.orchestrator.compose_video", new=AsyncMock(side_effect=_compose)) as mock:
        yield mock


@pytest.fixture
def narration_mock():
    from modules.narrator import NarrationResult

    result = NarrationResult(
        url="https://cdn.test/narration.mp3",
        key="narration.mp3",
        raw_duration=30.0,
        duration=28.29,
        sped_up=True,
    )
    with patch("pipeline.orchestrator.generate_narration", new=AsyncMock(return_value=result)) as mock:
        yield mock


@pytest.fixture
def orchestrator_factory(job_store, asset_store, scripted_provider, make_script, media_stubs, compose_mock):
    """
    Build a PipelineOrchestrator over scripted providers.

    The returned orchestrator exposes .video and .music providers for
    inspection.
    """
    from pipeline import ConcurrencyGate, PipelineOrchestrator

    def _create(scenes=3, video=None, music="default", gate_limit=2, script_generator=None, **kwargs):
        video = video or scripted_provider()
        if music == "default":
            music = scripted_provider(suffix="mp3")
        orchestrator = PipelineOrchestrator(
            job_store,
            asset_store,
            video,
            music_provider=music,
            tts=AsyncMock(),
            gate=ConcurrencyGate(gate_limit),
            script_generator=script_generator or AsyncMock(return_value=make_script(scenes)),
            poll_interval=0,
            **kwargs
        )
        orchestrator.video = video
        orchestrator.music = music
        return orchestrator

    return _create


@pytest.fixture
def stored_job(make_job, job_store):
    """Create a job in the job store."""
    async def _create(**kwargs):
        job = make_job(**kwargs)
        await job_store.create(job)
        return job

    return _create


@pytest.fixture
def stage_names(job_store):
    """Stage names recorded for a job, in order."""
    def _names(job_id):
        return [e["stage"] for e in job_store.events if e["job_id"] == str(job_id) and "failed" not in e]

    return _names
