"""
Deterministic asset key scheme.

All artifacts of a job live under users/{user_id}/jobs/{job_id}/. Keys are
pure functions of their inputs so that a retried upload lands on the same key.
"""

from typing import Optional, Union
from uuid import UUID

IdLike = Union[UUID, str]


def job_prefix(user_id: IdLike, job_id: IdLike) -> str:
    return f"users/{user_id}/jobs/{job_id}"


def _versioned(stem: str, version: Optional[int]) -> str:
    # Version 1 is the original render and keeps the unversioned key
    if version is None or version <= 1:
        return stem
    return f"{stem}-v{version}"


def clip_key(user_id: IdLike, job_id: IdLike, scene_number: int, version: Optional[int] = None) -> str:
    stem = _versioned(f"scene-{scene_number}", version)
    return f"{job_prefix(user_id, job_id)}/clips/{stem}.mp4"


def frame_key(user_id: IdLike, job_id: IdLike, scene_number: int, version: Optional[int] = None) -> str:
    stem = _versioned(f"scene-{scene_number}", version)
    return f"{job_prefix(user_id, job_id)}/thumbnails/{stem}.jpg"


def job_thumbnail_key(user_id: IdLike, job_id: IdLike) -> str:
    return f"{job_prefix(user_id, job_id)}/thumbnails/job-thumbnail.jpg"


def music_key(user_id: IdLike, job_id: IdLike) -> str:
    return f"{job_prefix(user_id, job_id)}/audio/background-music.mp3"


def narration_key(user_id: IdLike, job_id: IdLike) -> str:
    return f"{job_prefix(user_id, job_id)}/audio/narrator-voiceover.mp3"


def final_video_key(user_id: IdLike, job_id: IdLike) -> str:
    return f"{job_prefix(user_id, job_id)}/final/video.mp4"
