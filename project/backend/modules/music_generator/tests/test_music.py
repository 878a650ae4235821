"""
Unit tests for background music generation.
"""

import pytest
from unittest.mock import MagicMock

from shared import asset_keys
from shared.errors import ProviderError
from shared.models.generation import MusicRequest
from modules.music_generator import MinimaxMusicProvider
from modules.music_generator import process as music_process
from modules.music_generator.process import build_music_request
from modules.music_generator.provider import build_lyrics, build_music_prompt, extract_keywords


class TestPromptBuilding:
    def test_keywords_skip_stop_words(self):
        assert extract_keywords("The Joy of Sparkle Water!") == ["joy", "sparkle", "water"]

    def test_prompt_combines_style_mood_and_title(self):
        prompt = build_music_prompt("Sparkle Water", "uplifting", "acoustic")

        assert prompt == "Acoustic uplifting sparkle water background music"

    def test_short_prompt_is_padded(self):
        assert len(build_music_prompt("", "", "")) >= 10

    def test_long_prompt_is_clamped(self):
        prompt = build_music_prompt("word " * 10, "m" * 400, "s")

        assert len(prompt) == 300
        assert prompt.endswith("...")

    @pytest.mark.parametrize("duration,count", [(10, 3), (30, 4), (45, 6), (90, 7)])
    def test_lyrics_sections_scale_with_duration(self, duration, count):
        assert build_lyrics(duration).count("[") == count


class TestMinimaxMusicProvider:
    def test_build_input(self):
        provider = MinimaxMusicProvider(client=MagicMock(), model_ref="minimax/music-1.5")

        payload = provider.build_input(MusicRequest(prompt="Sparkle Water", duration=15, mood="calm", style="lofi"))

        assert payload["audio_format"] == "mp3"
        assert payload["sample_rate"] == 44100
        assert payload["lyrics"].startswith("[intro]")
        assert "calm" in payload["prompt"]


class TestMusicProcess:
    def test_request_comes_from_script(self, make_job, make_script):
        job = make_job()
        script = make_script(3)

        request = build_music_request(job, script)

        assert request.prompt == "Sparkle Water"
        assert request.duration == 15
        assert request.mood == "uplifting"
        assert request.style == "acoustic"

    @pytest.mark.asyncio
    async def test_track_is_stored(self, make_job, make_script, scripted_provider, asset_store, media_stubs):
        job = make_job()
        provider = scripted_provider(suffix="mp3")

        url = await music_process(job, make_script(3), provider, asset_store, poll_interval=0)

        key = asset_keys.music_key(job.user_id, job.id)
        assert url == asset_store.path_for(key).resolve().as_uri()
        media_stubs["music_download"].assert_awaited_once()
        assert media_stubs["music_download"].await_args.args[0] == "https://cdn.test/pred-1.mp3"

    @pytest.mark.asyncio
    async def test_provider_failure_propagates_with_job_id(self, make_job, make_script, scripted_provider, asset_store, media_stubs):
        job = make_job()

        with pytest.raises(ProviderError) as exc_info:
            await music_process(job, make_script(3), scripted_provider(fail_on={1}), asset_store, poll_interval=0)

        assert exc_info.value.job_id == job.id
