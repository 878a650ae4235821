"""
Scene renderer.

Renders one scene: submit to the video provider, poll to completion,
download the clip, extract the continuity frame and persist both under the
job's deterministic asset keys.
"""

import math
from dataclasses import dataclass
from typing import Optional

from shared import asset_keys
from shared.config import settings
from shared.errors import PipelineError
from shared.logging import get_logger
from shared.media import download_to_file, temp_directory
from shared.models.generation import GenerationRequest
from shared.models.job import Job
from shared.models.scene import Scene
from shared.polling import wait_for_prediction
from shared.storage import AssetStore
from modules.video_generator.frames import FrameResult, extract_first_frame, extract_last_frame
from modules.video_generator.providers import GenerationProvider

logger = get_logger("video_generator.renderer")


@dataclass
class SceneResult:
    """Artifacts of one rendered scene."""

    scene_number: int
    version: int
    clip_key: str
    clip_url: str
    frame: FrameResult
    frame_key: Optional[str] = None
    continuity_url: Optional[str] = None
    thumbnail_url: Optional[str] = None


def resolve_start_image(
    job: Job,
    scene_number: int,
    total_scenes: int,
    previous_frame_url: Optional[str]
) -> Optional[str]:
    """
    Start image for a scene, by priority:
    caller override for this scene, previous scene's last frame, none.
    """
    override = job.image_override(scene_number, total_scenes)
    if override:
        return override
    return previous_frame_url or None


class SceneRenderer:
    """Drives one provider call per scene and persists its artifacts."""

    def __init__(
        self,
        provider: GenerationProvider,
        asset_store: AssetStore,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        frame_url_ttl: Optional[int] = None
    ):
        self.provider = provider
        self.asset_store = asset_store
        self.poll_interval = settings.poll_interval_seconds if poll_interval is None else poll_interval
        self.max_attempts = max_attempts or settings.video_max_poll_attempts
        self.frame_url_ttl = frame_url_ttl or settings.presigned_url_ttl

    async def render(
        self,
        job: Job,
        scene: Scene,
        start_image_url: Optional[str],
        version: int = 1
    ) -> SceneResult:
        """
        Render a scene and upload its clip and last frame.

        Args:
            job: Owning job (ids, aspect ratio)
            scene: Scene to render
            start_image_url: Continuity seed or caller image; None for text-only
            version: Scene version; versions above 1 write versioned keys

        Returns:
            SceneResult with the clip URL and the continuity URL for the next scene

        Raises:
            ProviderError: Provider reported failure or cancellation
            GenerationTimeoutError: Poll horizon exceeded
            JobCancelledError: Cancelled while polling
        """
        n = scene.scene_number
        label = f"scene {n}"
        log_extra = {"job_id": str(job.id), "scene_number": n, "version": version}

        request = GenerationRequest(
            prompt=scene.generation_prompt,
            duration=max(1, math.ceil(scene.duration)),
            aspect_ratio=job.aspect_ratio,
            start_image_url=start_image_url,
        )
        logger.info(
            f"Rendering {label}",
            extra={**log_extra, "has_start_image": bool(start_image_url), "provider": self.provider.name}
        )

        try:
            prediction_id = await self.provider.submit(request)
            output_url = await wait_for_prediction(
                self.provider,
                prediction_id,
                max_attempts=self.max_attempts,
                interval=self.poll_interval,
                label=label,
                job_id=job.id,
                scene_number=n,
            )
        except PipelineError as e:
            e.job_id = e.job_id or job.id
            raise

        clip_key = asset_keys.clip_key(job.user_id, job.id, n, version)
        frame_key = asset_keys.frame_key(job.user_id, job.id, n, version)

        async with temp_directory(prefix=f"{job.id}-clip-{n}-") as work_dir:
            clip_path = await download_to_file(output_url, work_dir / "clip.mp4")
            frame = await extract_last_frame(clip_path, work_dir / "last_frame.jpg", job_id=job.id)

            clip_url = await self.asset_store.put(clip_key, clip_path, "video/mp4")

            result = SceneResult(
                scene_number=n,
                version=version,
                clip_key=clip_key,
                clip_url=clip_url,
                frame=frame,
            )

            if frame.is_ok:
                result.frame_key = frame_key
                result.continuity_url = await self._store_frame(frame, frame_key, log_extra)
                if not result.continuity_url:
                    result.frame = FrameResult.degraded("continuity frame upload failed")
                    result.frame_key = None

            if n == 1 and version == 1:
                result.thumbnail_url = await self._store_job_thumbnail(job, clip_path, work_dir)

        logger.info(
            f"Rendered {label}",
            extra={**log_extra, "clip_key": clip_key, "continuity": result.frame.is_ok}
        )
        return result

    async def _store_frame(self, frame: FrameResult, key: str, log_extra: dict) -> Optional[str]:
        try:
            await self.asset_store.put(key, frame.path, "image/jpeg")
            return await self.asset_store.presigned_get(key, self.frame_url_ttl)
        except PipelineError as e:
            logger.warning(f"Failed to store continuity frame: {e}", extra={**log_extra, "key": key})
            return None

    async def _store_job_thumbnail(self, job: Job, clip_path, work_dir) -> Optional[str]:
        thumb = await extract_first_frame(clip_path, work_dir / "thumbnail.jpg", job_id=job.id)
        if not thumb.is_ok:
            return None
        key = asset_keys.job_thumbnail_key(job.user_id, job.id)
        try:
            return await self.asset_store.put(key, thumb.path, "image/jpeg")
        except PipelineError as e:
            logger.warning(f"Failed to store job thumbnail: {e}", extra={"job_id": str(job.id), "key": key})
            return None
