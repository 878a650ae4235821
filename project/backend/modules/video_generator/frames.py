"""
Continuity frame extraction.

Extraction is best-effort: a failure yields FrameResult.degraded(reason)
and the next scene renders without a continuity seed.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union
from uuid import UUID

from shared.errors import CompositionError
from shared.logging import get_logger
from shared.media import run_ffmpeg_command

logger = get_logger("video_generator.frames")


@dataclass(frozen=True)
class FrameResult:
    """Outcome of a best-effort frame extraction."""

    path: Optional[Path] = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, path: Path) -> "FrameResult":
        return cls(path=path)

    @classmethod
    def degraded(cls, reason: str) -> "FrameResult":
        return cls(reason=reason)

    @property
    def is_ok(self) -> bool:
        return self.path is not None


async def extract_last_frame(
    video_path: Union[str, Path],
    output_path: Union[str, Path],
    job_id: Optional[Union[UUID, str]] = None
) -> FrameResult:
    """Grab the final frame of a clip as a JPEG."""
    output_path = Path(output_path)
    cmd = [
        "ffmpeg",
        "-sseof", "-1",
        "-i", str(video_path),
        "-update", "1",
        "-q:v", "2",
        "-y",
        str(output_path)
    ]
    return await _extract(cmd, output_path, job_id, "last frame")


async def extract_first_frame(
    video_path: Union[str, Path],
    output_path: Union[str, Path],
    job_id: Optional[Union[UUID, str]] = None
) -> FrameResult:
    """First frame scaled to 1280 wide, used as the job thumbnail."""
    output_path = Path(output_path)
    cmd = [
        "ffmpeg",
        "-ss", "0",
        "-i", str(video_path),
        "-frames:v", "1",
        "-vf", "scale=1280:-1",
        "-q:v", "2",
        "-y",
        str(output_path)
    ]
    return await _extract(cmd, output_path, job_id, "first frame")


async def _extract(cmd, output_path: Path, job_id, what: str) -> FrameResult:
    try:
        await run_ffmpeg_command(cmd, job_id=job_id, timeout=60)
    except CompositionError as e:
        logger.warning(
            f"Failed to extract {what}, continuing without it",
            extra={"job_id": str(job_id) if job_id else None, "error": str(e), "stderr": e.stderr[-500:]}
        )
        return FrameResult.degraded(f"{what} extraction failed: {e}")

    if not output_path.exists() or output_path.stat().st_size == 0:
        return FrameResult.degraded(f"{what} extraction produced no image")
    return FrameResult.ok(output_path)
