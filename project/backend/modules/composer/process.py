"""
Main entry point for composer module.

Assembles the final deliverable from stored scene clips: lossless concat in
scene order, optional disclosure overlay, and the audio policy selected by
the composition mode. Nothing is uploaded until every local step succeeded.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from shared import asset_keys
from shared.config import settings
from shared.errors import CompositionError
from shared.logging import get_logger
from shared.media import probe_dimensions, probe_duration, run_ffmpeg_command, temp_directory
from shared.models.job import Job
from shared.storage import AssetStore

from .audio_syncer import mux_audio
from .config import FFMPEG_CRF, FFMPEG_PRESET, OUTPUT_VIDEO_CODEC
from .overlay import build_overlay

logger = get_logger("composer.process")

COMPOSITION_MODES = ("mux", "separate")


@dataclass
class CompositionResult:
    video_key: str
    video_url: str
    mode: str
    overlay_applied: bool = False
    # Audio kept as separate deliverables ("separate" mode) keyed by role
    audio_tracks: Dict[str, str] = field(default_factory=dict)


def build_concat_list(clip_paths: List[Path]) -> str:
    return "".join(f"file '{path}'\n" for path in clip_paths)


async def concat_clips(clip_paths: List[Path], work_dir: Path, job_id) -> Path:
    """Stream-copy concat of clips in the given order; audio is dropped."""
    list_path = work_dir / "concat_list.txt"
    list_path.write_text(build_concat_list(clip_paths))
    output_path = work_dir / "concat.mp4"
    await run_ffmpeg_command([
        "ffmpeg",
        "-f", "concat",
        "-safe", "0",
        "-i", str(list_path),
        "-c:v", "copy",
        "-an",
        "-y",
        str(output_path)
    ], job_id=job_id)
    if not output_path.exists():
        raise CompositionError(f"Concatenated video not created: {output_path}", job_id=job_id)
    return output_path


async def apply_overlay(video_path: Path, job: Job, work_dir: Path) -> Optional[Path]:
    """Burn in the disclosure text. Returns None when no overlay applies."""
    duration = await probe_duration(video_path)
    width, height = await probe_dimensions(video_path)
    plan = build_overlay(job.side_effects_text, job.side_effects_start_time, duration, width, height)
    if plan is None:
        return None

    output_path = work_dir / "overlay.mp4"
    logger.info(
        "Applying text overlay",
        extra={"job_id": str(job.id), "start": plan.start, "end": plan.end, "font_size": plan.font_size, "lines": plan.line_count}
    )
    await run_ffmpeg_command([
        "ffmpeg",
        "-i", str(video_path),
        "-vf", plan.filter,
        "-c:v", OUTPUT_VIDEO_CODEC,
        "-preset", FFMPEG_PRESET,
        "-crf", str(FFMPEG_CRF),
        "-an",
        "-y",
        str(output_path)
    ], job_id=job.id)
    return output_path


async def process(job: Job, asset_store: AssetStore, mode: Optional[str] = None) -> CompositionResult:
    """
    Compose the final video for a job.

    Args:
        job: Job whose scenes all have clips
        asset_store: Source of clips/audio and destination of the final video
        mode: "mux" or "separate"; defaults to the job's recorded mode, then COMPOSITION_MODE

    Returns:
        CompositionResult with the final video key

    Raises:
        CompositionError: Missing clips or any ffmpeg step failed
    """
    mode = mode or job.composition_mode or settings.composition_mode
    if mode not in COMPOSITION_MODES:
        raise CompositionError(f"Unknown composition mode: {mode}", job_id=job.id)
    if not job.scenes:
        raise CompositionError("Job has no scenes to compose", job_id=job.id)
    if len(job.scene_video_urls) < len(job.scenes):
        raise CompositionError(
            f"Expected {len(job.scenes)} scene clips, have {len(job.scene_video_urls)}",
            job_id=job.id
        )

    logger.info(
        "Starting composition",
        extra={"job_id": str(job.id), "mode": mode, "scene_count": len(job.scenes)}
    )

    video_key = asset_keys.final_video_key(job.user_id, job.id)
    narration_key = asset_keys.narration_key(job.user_id, job.id)
    music_key = asset_keys.music_key(job.user_id, job.id)

    async with temp_directory(prefix=f"{job.id}-compose-") as work_dir:
        clip_paths = []
        for scene in sorted(job.scenes, key=lambda s: s.scene_number):
            n = scene.scene_number
            key = asset_keys.clip_key(job.user_id, job.id, n, job.scene_version(n))
            clip_paths.append(await asset_store.download(key, work_dir / f"scene-{n}.mp4"))

        video_path = await concat_clips(clip_paths, work_dir, job.id)

        overlay_applied = False
        if job.side_effects_text:
            overlaid = await apply_overlay(video_path, job, work_dir)
            if overlaid is not None:
                video_path = overlaid
                overlay_applied = True

        audio_tracks: Dict[str, str] = {}
        if mode == "mux":
            narration_path = None
            music_path = None
            if job.narrator_audio_url:
                narration_path = await asset_store.download(narration_key, work_dir / "narration.mp3")
            if job.audio_url:
                music_path = await asset_store.download(music_key, work_dir / "music.mp3")
            if narration_path or music_path:
                video_path = await mux_audio(
                    video_path,
                    work_dir / "final.mp4",
                    job.id,
                    narration_path=narration_path,
                    music_path=music_path,
                )
            else:
                logger.info("No audio tracks to mux, final video is silent", extra={"job_id": str(job.id)})
        else:
            if job.narrator_audio_url:
                audio_tracks["narration"] = narration_key
            if job.audio_url:
                audio_tracks["music"] = music_key

        video_url = await asset_store.put(video_key, video_path, "video/mp4")

    logger.info(
        "Composition complete",
        extra={"job_id": str(job.id), "video_key": video_key, "mode": mode, "overlay": overlay_applied}
    )
    return CompositionResult(
        video_key=video_key,
        video_url=video_url,
        mode=mode,
        overlay_applied=overlay_applied,
        audio_tracks=audio_tracks,
    )
