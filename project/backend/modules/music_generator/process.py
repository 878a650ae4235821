"""
Music stage.

Single submit/poll cycle against the music provider; the finished track is
stored at the job's background-music key.
"""

from typing import Optional

from shared import asset_keys
from shared.config import settings
from shared.errors import PipelineError
from shared.logging import get_logger
from shared.media import download_to_file, temp_directory
from shared.models.generation import MusicRequest
from shared.models.job import Job
from shared.models.scene import Script
from shared.polling import wait_for_prediction
from shared.storage import AssetStore
from modules.video_generator.providers import GenerationProvider

logger = get_logger("music_generator")


def build_music_request(job: Job, script: Script) -> MusicRequest:
    """Music parameters come from the script, not from individual scenes."""
    return MusicRequest(
        prompt=script.title or job.prompt,
        duration=script.total_duration or job.duration,
        mood=script.audio_spec.music_mood,
        style=script.audio_spec.music_style,
    )


async def process(
    job: Job,
    script: Script,
    provider: GenerationProvider,
    asset_store: AssetStore,
    poll_interval: Optional[float] = None,
    max_attempts: Optional[int] = None
) -> str:
    """
    Generate and store background music.

    Returns:
        URL of the stored track

    Raises:
        ProviderError / GenerationTimeoutError / JobCancelledError from polling
    """
    request = build_music_request(job, script)
    logger.info(
        "Generating background music",
        extra={"job_id": str(job.id), "mood": request.mood, "style": request.style, "duration": request.duration}
    )

    try:
        prediction_id = await provider.submit(request)
        output_url = await wait_for_prediction(
            provider,
            prediction_id,
            max_attempts=max_attempts or settings.music_max_poll_attempts,
            interval=settings.poll_interval_seconds if poll_interval is None else poll_interval,
            label="music",
            job_id=job.id,
        )
    except PipelineError as e:
        e.job_id = e.job_id or job.id
        raise

    key = asset_keys.music_key(job.user_id, job.id)
    async with temp_directory(prefix=f"{job.id}-music-") as work_dir:
        track = await download_to_file(output_url, work_dir / "music.mp3")
        url = await asset_store.put(key, track, "audio/mpeg")

    logger.info("Background music stored", extra={"job_id": str(job.id), "key": key})
    return url
