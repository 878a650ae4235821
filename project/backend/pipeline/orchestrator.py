"""
Pipeline orchestrator.

Per-job state machine: script → (narration) → scenes in order, with music
running alongside → audio → composition → complete. Each transition is one
JobStore.update_stage() call; the first stage-terminal error freezes the job
as failed at the stage that was running.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union
from uuid import UUID, uuid4

from shared import stages
from shared.config import settings
from shared.errors import (
    ConfigError,
    GenerationTimeoutError,
    JobCancelledError,
    JobTimeoutError,
    PipelineError,
    RateLimitError,
    RegenerationConflictError,
    ValidationError,
)
from shared.job_store import JobStore, SupabaseJobStore
from shared.logging import get_logger, reset_job_id, set_job_id
from shared.models.job import Job
from shared.models.scene import Script
from shared.media import check_ffmpeg_available
from shared.storage import AssetStore, get_asset_store
from modules.composer import process as compose_video
from modules.music_generator import process as generate_music
from modules.narrator import process as generate_narration
from modules.script_generator import process as generate_script
from modules.clip_regenerator import RegenerationController
from modules.music_generator import MinimaxMusicProvider
from modules.narrator.tts import OpenAITTS, resolve_voice
from modules.video_generator import GenerationProvider, SceneRenderer, get_video_provider, resolve_start_image
from pipeline.gate import ConcurrencyGate

logger = get_logger("pipeline.orchestrator")

IdLike = Union[UUID, str]
ScriptGenerator = Callable[[Job], Awaitable[Script]]

# Start of the disclosure overlay when only its text is given, as a fraction of duration
DEFAULT_DISCLOSURE_START_FRACTION = 0.8
MAX_ERROR_DETAIL_CHARS = 200

SCRIPT_FAILURE_MESSAGE = "Script generation failed. Please check your prompt and try again."
NARRATOR_FAILURE_MESSAGE = "Voiceover generation failed. Please try again later."
SCENE_FAILURE_MESSAGE = "Video generation failed at scene {scene_number}. Please try again."
AUDIO_FAILURE_MESSAGE = "Background music generation failed. Please try again."
COMPOSITION_FAILURE_MESSAGE = "Video composition failed. Please try again."
GENERIC_FAILURE_MESSAGE = "Ad generation failed. Please try again."


def stage_failure_message(stage: Optional[str]) -> str:
    """User-facing message for a failure during stage."""
    if stage in (stages.SCRIPT_GENERATING, stages.SCRIPT_COMPLETE):
        return SCRIPT_FAILURE_MESSAGE
    if stage in (stages.NARRATOR_GENERATING, stages.NARRATOR_COMPLETE):
        return NARRATOR_FAILURE_MESSAGE
    scene_number = stages.parse_scene_stage(stage)
    if scene_number is not None:
        return SCENE_FAILURE_MESSAGE.format(scene_number=scene_number)
    if stage in (stages.AUDIO_GENERATING, stages.AUDIO_COMPLETE):
        return AUDIO_FAILURE_MESSAGE
    if stage == stages.COMPOSING:
        return COMPOSITION_FAILURE_MESSAGE
    return GENERIC_FAILURE_MESSAGE


def failure_message(stage: Optional[str], error: BaseException) -> str:
    """
    Stage message plus a hint derived from the error.

    Timeouts, authentication problems and rate limits get a fixed hint;
    anything else appends the error text truncated to 200 characters.
    """
    user_message = stage_failure_message(stage)
    detail = str(error)
    lowered = detail.lower()

    if isinstance(error, (GenerationTimeoutError, JobTimeoutError)) or "timeout" in lowered or "timed out" in lowered:
        return f"{user_message} (Request timed out. The service may be busy. Please try again.)"
    if "authentication" in lowered or "unauthorized" in lowered or "401" in lowered:
        return f"{user_message} (Authentication failed. Please check API configuration.)"
    if isinstance(error, RateLimitError) or "rate limit" in lowered or "429" in lowered:
        return f"{user_message} (Rate limit exceeded. Please wait a moment and try again.)"

    if len(detail) > MAX_ERROR_DETAIL_CHARS:
        detail = detail[:MAX_ERROR_DETAIL_CHARS] + "..."
    return f"{user_message} (Error: {detail})"


def validate_request(job: Job) -> None:
    """
    Reject caller errors before any work is scheduled.

    Raises:
        ValidationError: Empty prompt or unknown narrator voice
    """
    if not job.prompt or not job.prompt.strip():
        raise ValidationError("Prompt is empty", job_id=job.id)
    if job.voice:
        try:
            resolve_voice(job.voice)
        except ValidationError as e:
            e.job_id = job.id
            raise


@dataclass
class _Run:
    """Mutable state of one pipeline run."""

    job: Job
    stage: Optional[str] = None
    total_scenes: Optional[int] = None
    # Last stage write; it runs to completion even if the run is cancelled
    pending_write: Optional[asyncio.Future] = None


class PipelineOrchestrator:
    """
    Runs jobs through the generation pipeline.

    Args:
        job_store: Job records; every stage transition is written here
        asset_store: Blob storage for all artifacts
        video_provider: Scene video model
        music_provider: Background music model; None disables music
        tts: Narration backend with async synthesize(text, voice, speed) (default: OpenAITTS)
        gate: Admission control shared by all runs (default: MAX_CONCURRENT_JOBS)
        script_generator: async callable Job -> Script
        composition_mode: "mux" or "separate" (default: COMPOSITION_MODE)
        job_timeout: Seconds a run may take once admitted (default: JOB_TIMEOUT_SECONDS)
        poll_interval: Seconds between provider polls (default: POLL_INTERVAL_SECONDS)
    """

    def __init__(
        self,
        job_store: JobStore,
        asset_store: AssetStore,
        video_provider: GenerationProvider,
        music_provider: Optional[GenerationProvider] = None,
        tts: Optional[Any] = None,
        gate: Optional[ConcurrencyGate] = None,
        script_generator: Optional[ScriptGenerator] = None,
        composition_mode: Optional[str] = None,
        job_timeout: Optional[float] = None,
        poll_interval: Optional[float] = None
    ):
        self.job_store = job_store
        self.asset_store = asset_store
        self.music_provider = music_provider
        self.tts = tts or OpenAITTS()
        self.gate = gate or ConcurrencyGate()
        self.script_generator = script_generator or generate_script
        self.composition_mode = composition_mode or settings.composition_mode
        self.job_timeout = job_timeout or settings.job_timeout_seconds
        self.poll_interval = settings.poll_interval_seconds if poll_interval is None else poll_interval
        self.renderer = SceneRenderer(video_provider, asset_store, poll_interval=self.poll_interval)
        self.regenerator = RegenerationController(job_store, asset_store, self.renderer)

        self._tasks: Dict[str, asyncio.Task] = {}
        # Job ids owned by a pipeline run or a regeneration
        self._active: Set[str] = set()

    def is_active(self, job_id: IdLike) -> bool:
        return str(job_id) in self._active

    def start_pipeline(self, job: Job) -> asyncio.Task:
        """
        Schedule a run for a stored job and return immediately.

        Raises:
            ValidationError: Invalid request, or the job already has an active run
        """
        validate_request(job)
        key = str(job.id)
        if key in self._active:
            raise ValidationError(f"Job {key} already has an active run", job_id=job.id)

        self._active.add(key)
        task = asyncio.create_task(self.run(job), name=f"pipeline-{key}")
        self._tasks[key] = task

        def _done(_task: asyncio.Task) -> None:
            self._tasks.pop(key, None)
            self._active.discard(key)

        task.add_done_callback(_done)
        logger.info("Pipeline scheduled", extra={"job_id": key})
        return task

    async def run(self, job: Job) -> str:
        """
        Execute one job to a terminal status.

        Holds a gate slot for the whole run. The job deadline starts once the
        slot is acquired. Errors are recorded on the job, never raised; task
        cancellation marks the job failed and is re-raised.

        Returns:
            "completed" or "failed"
        """
        state = _Run(job=job)
        log_token = set_job_id(job.id)
        try:
            async with self.gate.slot():
                logger.info(
                    "Pipeline started",
                    extra={"job_id": str(job.id), "gate_in_use": self.gate.in_use, "gate_limit": self.gate.limit}
                )
                await self._run_with_deadline(state)
        except asyncio.CancelledError:
            await self._fail(state, JobCancelledError("Job cancelled", job_id=job.id))
            raise
        except PipelineError as e:
            await self._fail(state, e)
            return "failed"
        except Exception as e:
            logger.error("Unexpected pipeline error", exc_info=e, extra={"job_id": str(job.id)})
            await self._fail(state, e)
            return "failed"
        finally:
            reset_job_id(log_token)

        logger.info("Pipeline completed", extra={"job_id": str(job.id)})
        return "completed"

    async def _run_with_deadline(self, state: _Run) -> None:
        inner = asyncio.create_task(self._execute(state))
        try:
            done, _ = await asyncio.wait({inner}, timeout=self.job_timeout)
        except asyncio.CancelledError:
            inner.cancel()
            await asyncio.gather(inner, return_exceptions=True)
            raise

        if not done:
            inner.cancel()
            await asyncio.gather(inner, return_exceptions=True)
            raise JobTimeoutError(
                f"Job exceeded its {self.job_timeout}s deadline", job_id=state.job.id
            )
        inner.result()

    async def _stage(self, state: _Run, stage: str, **metadata: Any) -> None:
        state.stage = stage
        if state.total_scenes:
            metadata.setdefault("total_scenes", state.total_scenes)
        write = asyncio.ensure_future(self.job_store.update_stage(state.job.id, stage, metadata))
        state.pending_write = write
        await asyncio.shield(write)
        logger.info(f"Stage {stage}", extra={"job_id": str(state.job.id), "stage": stage})

    async def _execute(self, state: _Run) -> None:
        job = state.job

        await self._stage(state, stages.SCRIPT_GENERATING)
        script = await self.script_generator(job)
        self._apply_script(job, script)
        state.total_scenes = len(job.scenes)
        await self._stage(
            state,
            stages.SCRIPT_COMPLETE,
            script_id=str(job.script_id),
            title=job.title,
            scenes=[scene.model_dump() for scene in job.scenes],
            side_effects_start_time=job.side_effects_start_time,
        )

        if job.voice and job.narrator_script:
            await self._stage(state, stages.NARRATOR_GENERATING)
            narration = await generate_narration(job, self.tts, self.asset_store)
            job.narrator_audio_url = narration.url
            await self._stage(
                state,
                stages.NARRATOR_COMPLETE,
                narrator_audio_url=narration.url,
                narration_duration=narration.duration,
            )

        music_task: Optional[asyncio.Task] = None
        if script.audio_spec.enable_audio and self.music_provider is not None:
            music_task = asyncio.create_task(
                generate_music(
                    job, script, self.music_provider, self.asset_store, poll_interval=self.poll_interval
                )
            )

        try:
            await self._render_scenes(state)

            await self._stage(state, stages.AUDIO_GENERATING)
            if music_task is not None:
                job.audio_url = await music_task
            await self._stage(state, stages.AUDIO_COMPLETE, audio_url=job.audio_url)
        finally:
            if music_task is not None and not music_task.done():
                music_task.cancel()
            if music_task is not None:
                # Reap the task so a failure here is never reported as unretrieved
                await asyncio.gather(music_task, return_exceptions=True)

        await self._stage(state, stages.COMPOSING)
        job.composition_mode = self.composition_mode
        composition = await compose_video(job, self.asset_store, mode=self.composition_mode)
        job.video_key = composition.video_key
        job.video_url = composition.video_url

        await self.job_store.mark_complete(
            job.id,
            composition.video_key,
            {
                "video_url": composition.video_url,
                "composition_mode": composition.mode,
                "overlay_applied": composition.overlay_applied,
                "audio_tracks": composition.audio_tracks,
                "scene_versions": {scene.scene_number: 1 for scene in job.scenes},
            },
        )
        state.stage = stages.COMPLETE

    async def _render_scenes(self, state: _Run) -> None:
        job = state.job
        total = len(job.scenes)
        previous_frame_url: Optional[str] = None

        for scene in sorted(job.scenes, key=lambda s: s.scene_number):
            n = scene.scene_number
            await self._stage(state, stages.scene_generating(n))

            start_image = resolve_start_image(job, n, total, previous_frame_url)
            result = await self.renderer.render(job, scene, start_image)
            job.scene_video_urls.append(result.clip_url)

            metadata: Dict[str, Any] = {
                "scene_video_urls": list(job.scene_video_urls),
                "continuity": result.frame.is_ok,
            }
            if result.thumbnail_url:
                job.thumbnail_url = result.thumbnail_url
                metadata["thumbnail_url"] = result.thumbnail_url
            if not result.frame.is_ok:
                logger.warning(
                    f"Continuity frame unavailable after scene {n}: {result.frame.reason}",
                    extra={"job_id": str(job.id), "scene_number": n}
                )
            await self._stage(state, stages.scene_complete(n), **metadata)
            previous_frame_url = result.continuity_url

    @staticmethod
    def _apply_script(job: Job, script: Script) -> None:
        """Copy script outputs onto the job; caller-supplied values win."""
        job.script_id = uuid4()
        job.title = script.title
        job.scenes = list(script.scenes)
        job.scene_video_urls = []

        audio = script.audio_spec
        job.narrator_script = job.narrator_script or audio.narrator_script
        job.side_effects_text = job.side_effects_text or audio.side_effects_text
        if job.side_effects_start_time is None:
            job.side_effects_start_time = audio.side_effects_start_time
        if job.side_effects_text and not job.side_effects_start_time:
            job.side_effects_start_time = round(job.duration * DEFAULT_DISCLOSURE_START_FRACTION, 2)

    async def _fail(self, state: _Run, error: BaseException) -> None:
        job_id = state.job.id
        message = failure_message(state.stage, error)
        logger.error(
            "Job failed",
            exc_info=error,
            extra={
                "job_id": str(job_id),
                "stage": state.stage,
                "error_code": getattr(error, "code", None) or "MODULE_FAILURE",
                "user_message": message,
            }
        )
        if state.pending_write is not None and not state.pending_write.done():
            # A stage write landing after mark_failed would flip the job back to processing
            await asyncio.gather(state.pending_write, return_exceptions=True)
        try:
            await self.job_store.mark_failed(job_id, message, stage=state.stage)
        except Exception as e:
            logger.error("Failed to mark job failed", exc_info=e, extra={"job_id": str(job_id)})

    async def regenerate_scene(self, job_id: IdLike, scene_number: int, cascade: bool = False) -> Dict[str, Any]:
        """
        Regenerate a scene of a finished job.

        Returns:
            {"new_version", "cascade_count", ...} from RegenerationResult

        Raises:
            RegenerationConflictError: A run or another regeneration owns the job
        """
        key = str(job_id)
        if key in self._active:
            raise RegenerationConflictError(f"Job {key} has an active pipeline run", job_id=job_id)

        self._active.add(key)
        log_token = set_job_id(job_id)
        try:
            result = await self.regenerator.regenerate(job_id, scene_number, cascade=cascade)
        finally:
            self._active.discard(key)
            reset_job_id(log_token)
        return result.to_dict()

    async def shutdown(self) -> None:
        """Cancel every running pipeline and wait for them to settle."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


def create_orchestrator(gate: Optional[ConcurrencyGate] = None) -> PipelineOrchestrator:
    """
    Build an orchestrator wired to the production backends from settings.

    Supabase job table and storage bucket, the VIDEO_MODEL provider, Minimax
    music and OpenAI TTS.

    Raises:
        ConfigError: ffmpeg/ffprobe missing, unknown VIDEO_MODEL or client setup failed
    """
    if not check_ffmpeg_available():
        raise ConfigError("ffmpeg and ffprobe must be on PATH for narration and composition")

    orchestrator = PipelineOrchestrator(
        job_store=SupabaseJobStore(),
        asset_store=get_asset_store(),
        video_provider=get_video_provider(),
        music_provider=MinimaxMusicProvider(),
        tts=OpenAITTS(),
        gate=gate,
    )
    logger.info(
        "Orchestrator created",
        extra={
            "video_model": settings.video_model,
            "music_model": settings.music_model,
            "composition_mode": orchestrator.composition_mode,
            "max_concurrent_jobs": orchestrator.gate.limit,
        }
    )
    return orchestrator
