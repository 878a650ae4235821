"""
Job persistence.

JobStore is the only way pipeline code touches job records. Every stage
transition is a single update_stage() call carrying the stage tag and its
metadata; progress is derived from the stage inside the store.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import UUID

from supabase import create_client, Client
from shared.config import settings
from shared.errors import ConfigError, JobNotFoundError, RetryableError
from shared.logging import get_logger
from shared.models.job import Job, utcnow
from shared.stages import COMPLETE, progress_for_stage

logger = get_logger("job_store")

IdLike = Union[UUID, str]

# Job fields a stage event may carry as metadata; anything else stays in stage_metadata
_OUTPUT_FIELDS = {
    "script_id", "title", "scenes", "scene_video_urls", "thumbnail_url", "audio_url",
    "narrator_audio_url", "video_key", "video_url", "composition_mode", "scene_versions",
    "side_effects_start_time",
}


def split_stage_metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Separate output-field updates from free-form stage metadata."""
    metadata = metadata or {}
    updates = {k: v for k, v in metadata.items() if k in _OUTPUT_FIELDS}
    extra = {k: v for k, v in metadata.items() if k not in _OUTPUT_FIELDS}
    updates["stage_metadata"] = extra
    return updates


class JobStore(ABC):
    """Persisted job records with atomic stage/metadata updates."""

    @abstractmethod
    async def create(self, job: Job) -> Job:
        ...

    @abstractmethod
    async def get(self, job_id: IdLike) -> Job:
        """Raises JobNotFoundError if the job does not exist."""

    @abstractmethod
    async def list_by_user(self, user_id: IdLike) -> List[Job]:
        ...

    @abstractmethod
    async def update_stage(
        self,
        job_id: IdLike,
        stage: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Move the job to stage (status=processing) and apply metadata in one write.

        A job already marked failed is left untouched.
        """

    @abstractmethod
    async def mark_failed(self, job_id: IdLike, message: str, stage: Optional[str] = None) -> None:
        """Freeze the job as failed. The stage is kept as-is unless given."""

    @abstractmethod
    async def mark_complete(
        self,
        job_id: IdLike,
        video_key: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        ...

    @abstractmethod
    async def save(self, job: Job) -> None:
        """Write the full record (used by regeneration)."""

    @abstractmethod
    async def delete(self, job_id: IdLike) -> None:
        ...


class InMemoryJobStore(JobStore):
    """Process-local JobStore for local runs and tests."""

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._lock = asyncio.Lock()
        self.events: List[Dict[str, Any]] = []

    async def create(self, job: Job) -> Job:
        async with self._lock:
            self._jobs[str(job.id)] = job.model_copy(deep=True)
        return job

    async def get(self, job_id: IdLike) -> Job:
        job = self._jobs.get(str(job_id))
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found", job_id=job_id)
        return job.model_copy(deep=True)

    async def list_by_user(self, user_id: IdLike) -> List[Job]:
        jobs = [j for j in self._jobs.values() if str(j.user_id) == str(user_id)]
        return [j.model_copy(deep=True) for j in sorted(jobs, key=lambda j: j.created_at, reverse=True)]

    async def _apply(self, job_id: IdLike, updates: Dict[str, Any], unless_failed: bool = False) -> bool:
        async with self._lock:
            job = self._jobs.get(str(job_id))
            if job is None:
                raise JobNotFoundError(f"Job {job_id} not found", job_id=job_id)
            if unless_failed and job.status == "failed":
                return False
            data = job.model_dump()
            data.update(updates)
            data["updated_at"] = utcnow()
            self._jobs[str(job_id)] = Job.model_validate(data)
            return True

    async def update_stage(self, job_id, stage, metadata=None) -> None:
        metadata = dict(metadata or {})
        updates = split_stage_metadata(metadata)
        updates.update(
            stage=stage,
            status="processing",
            progress=progress_for_stage(stage, metadata.get("total_scenes")),
        )
        if await self._apply(job_id, updates, unless_failed=True):
            self.events.append({"job_id": str(job_id), "stage": stage, "metadata": metadata})

    async def mark_failed(self, job_id, message, stage=None) -> None:
        updates: Dict[str, Any] = {"status": "failed", "error_message": message}
        if stage:
            updates["stage"] = stage
        self.events.append({"job_id": str(job_id), "stage": stage, "failed": message})
        await self._apply(job_id, updates)

    async def mark_complete(self, job_id, video_key, metadata=None) -> None:
        updates = split_stage_metadata(metadata)
        updates.update(
            status="completed",
            stage=COMPLETE,
            progress=100,
            video_key=video_key,
            error_message=None,
            completed_at=utcnow(),
        )
        self.events.append({"job_id": str(job_id), "stage": COMPLETE, "metadata": dict(metadata or {})})
        await self._apply(job_id, updates)

    async def save(self, job: Job) -> None:
        async with self._lock:
            if str(job.id) not in self._jobs:
                raise JobNotFoundError(f"Job {job.id} not found", job_id=job.id)
            saved = job.model_copy(deep=True)
            saved.updated_at = utcnow()
            self._jobs[str(job.id)] = saved

    async def delete(self, job_id) -> None:
        async with self._lock:
            self._jobs.pop(str(job_id), None)


class SupabaseJobStore(JobStore):
    """JobStore backed by the Supabase `jobs` table."""

    def __init__(self, client: Optional[Client] = None, table_name: str = "jobs"):
        if client is not None:
            self.client = client
        else:
            try:
                self.client = create_client(settings.supabase_url, settings.supabase_service_key)
            except Exception as e:
                raise ConfigError(f"Failed to initialize database client: {str(e)}") from e
        self.table_name = table_name

    async def _execute_sync(self, func: Callable[[], Any], max_attempts: int = 3) -> Any:
        """
        Execute a synchronous Supabase query in an executor with retries.

        Raises:
            RetryableError: If the query fails after all attempts
        """
        loop = asyncio.get_running_loop()
        for attempt in range(max_attempts):
            try:
                return await loop.run_in_executor(None, func)
            except Exception as e:
                if attempt == max_attempts - 1:
                    raise RetryableError(
                        f"Database operation failed after {max_attempts} attempts: {str(e)}"
                    ) from e
                # Exponential backoff: 2s, 4s
                await asyncio.sleep(2 ** (attempt + 1))

    def _table(self):
        return self.client.table(self.table_name)

    @staticmethod
    def _to_row(values: Dict[str, Any]) -> Dict[str, Any]:
        # UUIDs, datetimes and nested models to JSON-compatible values
        row = {}
        for key, value in values.items():
            if isinstance(value, UUID):
                row[key] = str(value)
            elif hasattr(value, "isoformat"):
                row[key] = value.isoformat()
            elif isinstance(value, list):
                row[key] = [v.model_dump(mode="json") if hasattr(v, "model_dump") else v for v in value]
            elif isinstance(value, dict):
                row[key] = {str(k): v for k, v in value.items()}
            else:
                row[key] = value
        return row

    async def _update(self, job_id: IdLike, values: Dict[str, Any], unless_failed: bool = False) -> bool:
        values["updated_at"] = utcnow()
        row = self._to_row(values)

        def _run():
            query = self._table().update(row).eq("id", str(job_id))
            if unless_failed:
                query = query.neq("status", "failed")
            return query.execute()

        result = await self._execute_sync(_run)
        if result.data:
            return True
        if unless_failed:
            return False
        raise JobNotFoundError(f"Job {job_id} not found", job_id=job_id)

    async def create(self, job: Job) -> Job:
        row = job.model_dump(mode="json")
        await self._execute_sync(lambda: self._table().insert(row).execute())
        logger.info("Created job", extra={"job_id": str(job.id), "user_id": str(job.user_id)})
        return job

    async def get(self, job_id: IdLike) -> Job:
        result = await self._execute_sync(
            lambda: self._table().select("*").eq("id", str(job_id)).limit(1).execute()
        )
        if not result.data:
            raise JobNotFoundError(f"Job {job_id} not found", job_id=job_id)
        return Job.model_validate(result.data[0])

    async def list_by_user(self, user_id: IdLike) -> List[Job]:
        result = await self._execute_sync(
            lambda: self._table()
            .select("*")
            .eq("user_id", str(user_id))
            .order("created_at", desc=True)
            .execute()
        )
        return [Job.model_validate(row) for row in result.data or []]

    async def update_stage(self, job_id, stage, metadata=None) -> None:
        metadata = dict(metadata or {})
        values = split_stage_metadata(metadata)
        values.update(
            stage=stage,
            status="processing",
            progress=progress_for_stage(stage, metadata.get("total_scenes")),
        )
        if not await self._update(job_id, values, unless_failed=True):
            logger.warning(
                "Stage write skipped, job is failed or missing",
                extra={"job_id": str(job_id), "stage": stage}
            )
            return
        logger.debug(f"Stage -> {stage}", extra={"job_id": str(job_id), "stage": stage})

    async def mark_failed(self, job_id, message, stage=None) -> None:
        values: Dict[str, Any] = {"status": "failed", "error_message": message}
        if stage:
            values["stage"] = stage
        await self._update(job_id, values)

    async def mark_complete(self, job_id, video_key, metadata=None) -> None:
        values = split_stage_metadata(metadata)
        values.update(
            status="completed",
            stage=COMPLETE,
            progress=100,
            video_key=video_key,
            error_message=None,
            completed_at=utcnow(),
        )
        await self._update(job_id, values)

    async def save(self, job: Job) -> None:
        job.updated_at = utcnow()
        row = job.model_dump(mode="json")
        await self._execute_sync(
            lambda: self._table().update(row).eq("id", str(job.id)).execute()
        )

    async def delete(self, job_id) -> None:
        await self._execute_sync(
            lambda: self._table().delete().eq("id", str(job_id)).execute()
        )
        logger.info("Deleted job", extra={"job_id": str(job_id)})
