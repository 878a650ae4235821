"""
Narration stage.

Synthesize the narrator script once at 1.0x, speed up the trailing
disclosure segment, and store the result at the job's narrator key.
"""

from dataclasses import dataclass
from typing import Optional

from shared import asset_keys
from shared.config import settings
from shared.errors import PipelineError, ValidationError
from shared.logging import get_logger
from shared.media import probe_duration, temp_directory
from shared.models.job import Job
from shared.storage import AssetStore
from modules.narrator.speed import apply_disclosure_speedup, output_duration, should_speed_up
from modules.narrator.tts import resolve_voice

logger = get_logger("narrator")


@dataclass
class NarrationResult:
    url: str
    key: str
    raw_duration: float
    duration: float
    sped_up: bool


def validate_narration(job: Job) -> None:
    """
    Caller errors are rejected before any synthesis.

    Raises:
        ValidationError: Empty script or unknown voice
    """
    if not job.narrator_script or not job.narrator_script.strip():
        raise ValidationError("Narrator script is empty", job_id=job.id)
    try:
        resolve_voice(job.voice)
    except ValidationError as e:
        e.job_id = job.id
        raise


async def process(
    job: Job,
    tts,
    asset_store: AssetStore,
    speed_factor: Optional[float] = None
) -> NarrationResult:
    """
    Produce and store the narration track.

    Args:
        job: Job with narrator_script, voice and optional side_effects_start_time
        tts: Object with async synthesize(text, voice, speed) -> bytes
        asset_store: Destination store
        speed_factor: Disclosure playback rate (defaults to DISCLOSURE_SPEED_FACTOR)

    Returns:
        NarrationResult; duration is main + tail / speed_factor when sped up
    """
    validate_narration(job)
    speed = speed_factor or settings.disclosure_speed_factor
    split_at = job.side_effects_start_time

    try:
        audio = await tts.synthesize(job.narrator_script, job.voice, 1.0)
    except PipelineError as e:
        e.job_id = e.job_id or job.id
        raise

    key = asset_keys.narration_key(job.user_id, job.id)
    async with temp_directory(prefix=f"{job.id}-narration-") as work_dir:
        raw_path = work_dir / "narration_raw.mp3"
        raw_path.write_bytes(audio)
        raw_duration = await probe_duration(raw_path)

        sped_up = should_speed_up(split_at, raw_duration)
        if sped_up:
            final_path = await apply_disclosure_speedup(
                raw_path, work_dir / "narration.mp3", work_dir, split_at, speed, job_id=job.id
            )
        else:
            final_path = raw_path
            if split_at is not None:
                logger.info(
                    "Disclosure start outside narration, keeping 1.0x audio",
                    extra={"job_id": str(job.id), "split_at": split_at, "duration": raw_duration}
                )

        url = await asset_store.put(key, final_path, "audio/mpeg")

    duration = output_duration(raw_duration, split_at, speed)
    logger.info(
        "Narration stored",
        extra={"job_id": str(job.id), "key": key, "raw_duration": raw_duration, "duration": duration}
    )
    return NarrationResult(url=url, key=key, raw_duration=raw_duration, duration=duration, sped_up=sped_up)
