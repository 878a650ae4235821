"""
Pytest configuration and fixtures shared by every test package.
"""

import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Set
from uuid import uuid4

import pytest
from unittest.mock import AsyncMock, patch


def pytest_configure(config):
    """Set up environment variables before any imports."""
    # shared.config builds its settings singleton at import time
    os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
    os.environ.setdefault("SUPABASE_SERVICE_KEY", "test_service_key_1234567890123456789012345678901234567890")
    os.environ.setdefault("OPENAI_API_KEY", "sk-test123456789012345678901234567890")
    os.environ.setdefault("REPLICATE_API_TOKEN", "r8_test123456789012345678901234567890")
    os.environ.setdefault("ENVIRONMENT", "development")
    os.environ.setdefault("LOG_LEVEL", "DEBUG")
    os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "adgen-test-logs"))


@pytest.fixture(autouse=True)
def test_env_vars(monkeypatch):
    """Set up test environment variables (autouse to ensure they're set)."""
    monkeypatch.setenv("SUPABASE_URL", "https://test.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_KEY", "test_service_key_1234567890123456789012345678901234567890")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test123456789012345678901234567890")
    monkeypatch.setenv("REPLICATE_API_TOKEN", "r8_test123456789012345678901234567890")
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")


class ScriptedProvider:
    """
    In-process GenerationProvider.

    Every submission succeeds on its first poll unless its 1-based
    submission number is listed in fail_on (terminal failure) or hang_on
    (never leaves "processing").
    """

    name = "scripted"

    def __init__(self, fail_on: Optional[Set[int]] = None, hang_on: Optional[Set[int]] = None,
                 error: str = "content moderation rejected the prompt", suffix: str = "mp4"):
        from shared.models.generation import Prediction

        self._prediction_cls = Prediction
        self.fail_on = fail_on or set()
        self.hang_on = hang_on or set()
        self.error = error
        self.suffix = suffix
        self.requests: List = []
        self._ids: Dict[str, int] = {}

    async def submit(self, request) -> str:
        self.requests.append(request)
        prediction_id = f"pred-{len(self.requests)}"
        self._ids[prediction_id] = len(self.requests)
        return prediction_id

    async def poll(self, prediction_id: str):
        number = self._ids[prediction_id]
        if number in self.fail_on:
            return self._prediction_cls(id=prediction_id, status="failed", error=self.error)
        if number in self.hang_on:
            return self._prediction_cls(id=prediction_id, status="processing")
        return self._prediction_cls(
            id=prediction_id,
            status="succeeded",
            output_url=f"https://cdn.test/{prediction_id}.{self.suffix}",
        )


@pytest.fixture
def scripted_provider():
    """Factory for ScriptedProvider instances."""
    return ScriptedProvider


@pytest.fixture
def asset_store(tmp_path):
    from shared.storage import LocalAssetStore

    return LocalAssetStore(tmp_path / "assets")


@pytest.fixture
def job_store():
    from shared.job_store import InMemoryJobStore

    return InMemoryJobStore()


@pytest.fixture
def make_script():
    """Build a Script with n scenes of 5 seconds each."""
    from shared.models.scene import AudioSpec, Scene, Script

    def _make(n: int = 3, enable_audio: bool = True, **audio) -> Script:
        return Script(
            title="Sparkle Water",
            total_duration=5 * n,
            scenes=[
                Scene(
                    scene_number=i,
                    start_time=5.0 * (i - 1),
                    duration=5,
                    generation_prompt=f"Scene {i}: bottle on a sunlit table, shot {i}",
                )
                for i in range(1, n + 1)
            ],
            audio_spec=AudioSpec(enable_audio=enable_audio, music_mood="uplifting", music_style="acoustic", **audio),
        )

    return _make


@pytest.fixture
def make_job():
    from shared.models.job import Job

    def _make(**kwargs) -> Job:
        kwargs.setdefault("user_id", uuid4())
        kwargs.setdefault("prompt", "Ad for a sparkling water brand")
        kwargs.setdefault("duration", 15)
        return Job(**kwargs)

    return _make


async def _fake_download(url, dest_path):
    dest = Path(dest_path)
    dest.write_bytes(f"media from {url}".encode())
    return dest


async def _fake_frame(video_path, output_path, job_id=None):
    from modules.video_generator.frames import FrameResult

    output = Path(output_path)
    output.write_bytes(b"\xff\xd8jpeg")
    return FrameResult.ok(output)


@pytest.fixture
def media_stubs():
    """
    Replace network downloads and ffmpeg frame grabs with local file writes.

    Yields the mocks so tests can inspect or override them.
    """
    with patch("modules.video_generator.renderer.download_to_file", new=AsyncMock(side_effect=_fake_download)) as clip_dl, \
            patch("modules.video_generator.renderer.extract_last_frame", new=AsyncMock(side_effect=_fake_frame)) as last, \
            patch("modules.video_generator.renderer.extract_first_frame", new=AsyncMock(side_effect=_fake_frame)) as first, \
            patch("modules.music_generator.process.download_to_file", new=AsyncMock(side_effect=_fake_download)) as music_dl:
        yield {
            "clip_download": clip_dl,
            "last_frame": last,
            "first_frame": first,
            "music_download": music_dl,
        }
