"""
Scene regeneration.

Re-renders one scene of an existing job, optionally cascading through every
later scene so continuity frames stay chained. Each regenerated scene gets
a new version and writes versioned clip/frame keys; earlier scenes and
earlier versions are never touched. The final video is recomposed once all
clips are present.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Union
from uuid import UUID

from shared import asset_keys
from shared.config import settings
from shared.errors import (
    PipelineError,
    RegenerationConflictError,
    ValidationError,
)
from shared.job_store import JobStore
from shared.stages import COMPLETE
from shared.logging import get_logger
from shared.models.job import Job, utcnow
from shared.storage import AssetStore
from modules.composer import process as composer_process
from modules.video_generator.renderer import SceneRenderer, resolve_start_image

logger = get_logger("clip_regenerator.process")

IdLike = Union[UUID, str]


@dataclass
class RegenerationResult:
    job_id: str
    scene_number: int
    new_version: int
    cascade_count: int
    clip_url: str
    video_key: Optional[str] = None
    recomposed: bool = False

    def to_dict(self) -> dict:
        return {
            "job_id": self.job_id,
            "scene_number": self.scene_number,
            "new_version": self.new_version,
            "cascade_count": self.cascade_count,
            "clip_url": self.clip_url,
            "video_key": self.video_key,
        }


def validate_regeneration(job: Job, scene_number: int) -> None:
    """
    Check that a job can have scene_number regenerated.

    Completed jobs are always eligible. Failed jobs are eligible when every
    scene before the target already has a clip, so continuity can be seeded.

    Raises:
        ValidationError: Wrong status, no scenes, or scene number out of range
    """
    if not job.scenes:
        raise ValidationError("Job has no scenes to regenerate", job_id=job.id)
    if scene_number < 1 or scene_number > len(job.scenes):
        raise ValidationError(
            f"Invalid scene number {scene_number}. Job has {len(job.scenes)} scenes.",
            job_id=job.id
        )
    if job.status == "completed":
        return
    if job.status == "failed" and len(job.scene_video_urls) >= scene_number - 1:
        return
    raise ValidationError(
        f"Cannot regenerate scenes of a {job.status} job",
        job_id=job.id
    )


class RegenerationController:
    """
    Re-runs a scene range against a stored job.

    Args:
        job_store: Job records
        asset_store: Clip/frame storage, also used to seed continuity
        renderer: SceneRenderer bound to the video provider
        is_active: Returns True while a pipeline run owns the job
    """

    def __init__(
        self,
        job_store: JobStore,
        asset_store: AssetStore,
        renderer: SceneRenderer,
        is_active: Optional[Callable[[str], bool]] = None
    ):
        self.job_store = job_store
        self.asset_store = asset_store
        self.renderer = renderer
        self.is_active = is_active or (lambda job_id: False)

    async def continuity_seed(self, job: Job, scene_number: int) -> Optional[str]:
        """
        Presigned URL of the previous scene's stored last frame.

        The previous scene's current version is tried first, then its
        unversioned key. None when neither exists.
        """
        if scene_number <= 1:
            return None
        previous = scene_number - 1
        keys = [asset_keys.frame_key(job.user_id, job.id, previous, job.scene_version(previous))]
        unversioned = asset_keys.frame_key(job.user_id, job.id, previous)
        if unversioned not in keys:
            keys.append(unversioned)

        for key in keys:
            try:
                return await self.asset_store.presigned_get(key, settings.presigned_url_ttl)
            except PipelineError as e:
                logger.debug(f"No continuity frame at {key}: {e}", extra={"job_id": str(job.id)})

        logger.warning(
            "Could not get previous scene frame for continuity",
            extra={"job_id": str(job.id), "prev_scene": previous}
        )
        return None

    async def regenerate(self, job_id: IdLike, scene_number: int, cascade: bool = False) -> RegenerationResult:
        """
        Regenerate a scene and, with cascade, every scene after it.

        A failure on the target scene propagates and leaves the job unchanged.
        A failure later in a cascade stops the cascade; scenes regenerated so
        far are kept and reported through cascade_count.

        Raises:
            RegenerationConflictError: A pipeline run is active for the job
            JobNotFoundError: Unknown job
            ValidationError: Job not eligible or scene out of range
        """
        if self.is_active(str(job_id)):
            raise RegenerationConflictError(
                f"Job {job_id} has an active pipeline run", job_id=job_id
            )

        job = await self.job_store.get(job_id)
        validate_regeneration(job, scene_number)
        scenes = sorted(job.scenes, key=lambda s: s.scene_number)
        total = len(scenes)

        logger.info(
            "Scene regeneration requested",
            extra={"job_id": str(job.id), "scene_number": scene_number, "cascade": cascade}
        )

        targets = scenes[scene_number - 1:] if cascade else [scenes[scene_number - 1]]
        previous_frame_url = await self.continuity_seed(job, scene_number)

        regenerated: List[int] = []
        clip_url = ""
        for scene in targets:
            n = scene.scene_number
            version = job.scene_version(n) + 1
            start_image = resolve_start_image(job, n, total, previous_frame_url)
            try:
                result = await self.renderer.render(job, scene, start_image, version=version)
            except PipelineError as e:
                if not regenerated:
                    logger.error(
                        "Scene regeneration failed",
                        exc_info=e,
                        extra={"job_id": str(job.id), "scene_number": n}
                    )
                    raise
                logger.error(
                    "Cascade scene regeneration failed, keeping partial result",
                    exc_info=e,
                    extra={"job_id": str(job.id), "scene_number": n, "regenerated": regenerated}
                )
                break

            self._apply_scene(job, n, version, result.clip_url)
            if n == scene_number:
                clip_url = result.clip_url
            regenerated.append(n)
            previous_frame_url = result.continuity_url

        new_version = job.scene_version(scene_number)
        cascade_count = len(regenerated) - 1

        # Clip versions are recorded before recomposition so they survive a compose failure
        await self.job_store.save(job)

        recomposed = False
        if len(job.scene_video_urls) >= total:
            composition = await composer_process(job, self.asset_store, mode=job.composition_mode)
            job.video_key = composition.video_key
            job.video_url = composition.video_url
            job.composition_mode = composition.mode
            if job.status == "failed":
                job.status = "completed"
                job.stage = COMPLETE
                job.progress = 100
                job.completed_at = utcnow()
                job.error_message = None
            await self.job_store.save(job)
            recomposed = True

        logger.info(
            "Scene regeneration complete",
            extra={
                "job_id": str(job.id),
                "scene_number": scene_number,
                "new_version": new_version,
                "cascade_count": cascade_count,
                "recomposed": recomposed,
            }
        )
        return RegenerationResult(
            job_id=str(job.id),
            scene_number=scene_number,
            new_version=new_version,
            cascade_count=cascade_count,
            clip_url=clip_url,
            video_key=job.video_key,
            recomposed=recomposed,
        )

    @staticmethod
    def _apply_scene(job: Job, scene_number: int, version: int, clip_url: str) -> None:
        job.scene_versions[scene_number] = version
        index = scene_number - 1
        if index < len(job.scene_video_urls):
            job.scene_video_urls[index] = clip_url
        else:
            # Failed jobs grow their clip list one scene at a time
            job.scene_video_urls.append(clip_url)
