"""
Local media tooling shared by every stage.

FFmpeg/ffprobe execution, media downloads and scoped temp directories.
Every call here is a suspension point: cancelling the awaiting task kills the
child process and the temp directory is removed on the way out.
"""

import asyncio
import shutil
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path
from typing import List, Optional, Tuple, Union
from uuid import UUID

import httpx

from shared.config import settings
from shared.errors import CompositionError, RetryableError
from shared.logging import get_logger
from shared.retry import retry_with_backoff

logger = get_logger("media")

DEFAULT_DIMENSIONS = (1920, 1080)


def check_ffmpeg_available() -> bool:
    """True if both ffmpeg and ffprobe are on PATH."""
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


@asynccontextmanager
async def temp_directory(prefix: str):
    """
    Context manager for a temporary directory with automatic cleanup.

    Args:
        prefix: Prefix for the directory name, e.g. "{job_id}-clip-2-"

    Yields:
        Path to the temporary directory
    """
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix))
    try:
        yield temp_dir
    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)


async def _communicate(cmd: List[str], timeout: float) -> Tuple[int, bytes, bytes]:
    process = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except BaseException:
        # Timeout or task cancellation: don't leave the child running
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise
    return process.returncode, stdout, stderr


async def run_ffmpeg_command(
    cmd: List[str],
    job_id: Optional[Union[UUID, str]] = None,
    timeout: Optional[float] = None
) -> str:
    """
    Run an FFmpeg command.

    Args:
        cmd: Command as list of strings
        job_id: Job ID for logging
        timeout: Timeout in seconds (defaults to FFMPEG_TIMEOUT_SECONDS)

    Returns:
        Captured stdout

    Raises:
        CompositionError: Non-zero exit, timeout, or missing binary; carries stderr
    """
    timeout = timeout or settings.ffmpeg_timeout_seconds
    logger.debug(
        f"Running: {' '.join(cmd)}",
        extra={"job_id": str(job_id) if job_id else None, "command": cmd}
    )

    try:
        returncode, stdout, stderr = await _communicate(cmd, timeout)
    except asyncio.TimeoutError as e:
        raise CompositionError(f"{cmd[0]} timed out after {timeout}s", job_id=job_id) from e
    except FileNotFoundError as e:
        raise CompositionError(f"{cmd[0]} not found on PATH", job_id=job_id) from e

    if returncode != 0:
        error_output = stderr.decode(errors="replace") if stderr else "Unknown FFmpeg error"
        logger.error(
            f"{cmd[0]} exited with {returncode}",
            extra={"job_id": str(job_id) if job_id else None, "stderr": error_output[-2000:]}
        )
        raise CompositionError(
            f"{cmd[0]} exited with code {returncode}",
            job_id=job_id,
            stderr=error_output
        )

    return stdout.decode(errors="replace") if stdout else ""


async def probe_duration(media_path: Union[str, Path]) -> float:
    """
    Media duration in seconds via ffprobe.

    Raises:
        CompositionError: If ffprobe fails or prints something unparsable
    """
    output = await run_ffmpeg_command([
        "ffprobe",
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(media_path)
    ], timeout=30)
    try:
        return float(output.strip())
    except ValueError as e:
        raise CompositionError(f"Could not parse duration from ffprobe output: {output!r}") from e


async def probe_dimensions(video_path: Union[str, Path]) -> Tuple[int, int]:
    """Width and height of the first video stream, falling back to 1920x1080."""
    try:
        output = await run_ffmpeg_command([
            "ffprobe",
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "csv=p=0:s=x",
            str(video_path)
        ], timeout=30)
        width, height = output.strip().split("x")[:2]
        return int(width), int(height)
    except (CompositionError, ValueError) as e:
        logger.warning(
            f"Failed to probe video dimensions: {e}, using {DEFAULT_DIMENSIONS}",
            extra={"video_path": str(video_path)}
        )
        return DEFAULT_DIMENSIONS


@retry_with_backoff(max_attempts=3, base_delay=2)
async def download_to_file(url: str, dest_path: Union[str, Path]) -> Path:
    """
    Stream a remote media file to disk.

    Raises:
        RetryableError: If the download fails (retried with backoff)
    """
    dest = Path(dest_path)
    try:
        async with httpx.AsyncClient(timeout=60.0, follow_redirects=True) as client:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                with open(dest, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
        return dest
    except httpx.HTTPError as e:
        logger.error(f"Failed to download {url}: {e}", extra={"url": url})
        raise RetryableError(f"Download failed: {str(e)}") from e
