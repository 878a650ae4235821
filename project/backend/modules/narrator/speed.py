"""
Disclosure speed-up.

The narration is split at the disclosure timestamp; the tail is sped up
with atempo (pitch-preserving) and concatenated back onto the main segment.
"""

from pathlib import Path
from typing import Optional, Union
from uuid import UUID

from shared.logging import get_logger
from shared.media import run_ffmpeg_command

logger = get_logger("narrator.speed")

# Tails shorter than this are left at 1.0x
MIN_TAIL_SECONDS = 0.5


def should_speed_up(split_at: Optional[float], duration: float) -> bool:
    return split_at is not None and 0 < split_at < duration - MIN_TAIL_SECONDS


def output_duration(duration: float, split_at: Optional[float], speed: float) -> float:
    """Duration after speeding up everything past split_at by `speed`."""
    if not should_speed_up(split_at, duration):
        return duration
    return split_at + (duration - split_at) / speed


async def apply_disclosure_speedup(
    input_path: Union[str, Path],
    output_path: Union[str, Path],
    work_dir: Union[str, Path],
    split_at: float,
    speed: float,
    job_id: Optional[Union[UUID, str]] = None
) -> Path:
    """
    Write input_path to output_path with the tail from split_at played at `speed`.

    Raises:
        CompositionError: Any ffmpeg step failed
    """
    work_dir = Path(work_dir)
    main_part = work_dir / "main.mp3"
    tail_part = work_dir / "tail.mp3"
    fast_tail = work_dir / "tail_fast.mp3"
    concat_list = work_dir / "narration_concat.txt"

    await run_ffmpeg_command(
        ["ffmpeg", "-i", str(input_path), "-ss", "0", "-to", f"{split_at:.3f}", "-c", "copy", "-y", str(main_part)],
        job_id=job_id
    )
    await run_ffmpeg_command(
        ["ffmpeg", "-i", str(input_path), "-ss", f"{split_at:.3f}", "-c", "copy", "-y", str(tail_part)],
        job_id=job_id
    )
    await run_ffmpeg_command(
        ["ffmpeg", "-i", str(tail_part), "-filter:a", f"atempo={speed}", "-y", str(fast_tail)],
        job_id=job_id
    )

    concat_list.write_text(f"file '{main_part}'\nfile '{fast_tail}'\n")
    await run_ffmpeg_command(
        ["ffmpeg", "-f", "concat", "-safe", "0", "-i", str(concat_list), "-c", "copy", "-y", str(output_path)],
        job_id=job_id
    )

    logger.info(
        "Applied disclosure speed-up",
        extra={"job_id": str(job_id) if job_id else None, "split_at": split_at, "speed": speed}
    )
    return Path(output_path)
