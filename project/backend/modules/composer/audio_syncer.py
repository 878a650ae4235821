"""
Audio mux for the composer.

Used only in "mux" composition mode: narration and/or music are mixed into
the final video, bounded by the shortest stream.
"""
from pathlib import Path
from typing import List, Optional
from uuid import UUID

from shared.errors import CompositionError
from shared.logging import get_logger
from shared.media import run_ffmpeg_command
from .config import MUSIC_VOLUME_UNDER_NARRATION, OUTPUT_AUDIO_BITRATE, OUTPUT_AUDIO_CODEC

logger = get_logger("composer.audio_syncer")


def build_mux_command(
    video_path: Path,
    output_path: Path,
    narration_path: Optional[Path] = None,
    music_path: Optional[Path] = None
) -> List[str]:
    """
    FFmpeg command muxing up to two audio tracks under a copied video stream.

    With both tracks, music is ducked under the narration and mixed with amix.
    """
    if narration_path is None and music_path is None:
        raise CompositionError("mux requested without any audio track")

    cmd = ["ffmpeg", "-i", str(video_path)]
    audio_inputs = [p for p in (narration_path, music_path) if p is not None]
    for path in audio_inputs:
        cmd += ["-i", str(path)]

    if len(audio_inputs) == 2:
        cmd += [
            "-filter_complex",
            f"[2:a]volume={MUSIC_VOLUME_UNDER_NARRATION}[music];"
            "[1:a][music]amix=inputs=2:duration=longest:dropout_transition=0[aout]",
            "-map", "0:v:0",
            "-map", "[aout]",
        ]
    else:
        cmd += ["-map", "0:v:0", "-map", "1:a:0"]

    cmd += [
        "-c:v", "copy",
        "-c:a", OUTPUT_AUDIO_CODEC,
        "-b:a", OUTPUT_AUDIO_BITRATE,
        "-shortest",
        "-y",
        str(output_path),
    ]
    return cmd


async def mux_audio(
    video_path: Path,
    output_path: Path,
    job_id: UUID,
    narration_path: Optional[Path] = None,
    music_path: Optional[Path] = None
) -> Path:
    """
    Mux narration/music into the video.

    Raises:
        CompositionError: ffmpeg failed or produced no file
    """
    cmd = build_mux_command(video_path, output_path, narration_path, music_path)
    logger.info(
        "Muxing audio into final video",
        extra={"job_id": str(job_id), "narration": narration_path is not None, "music": music_path is not None}
    )
    await run_ffmpeg_command(cmd, job_id=job_id)
    if not output_path.exists():
        raise CompositionError(f"Muxed video not created: {output_path}", job_id=job_id)
    return output_path
