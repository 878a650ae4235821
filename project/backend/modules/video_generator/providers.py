"""
Generation providers.

GenerationProvider is the submit/poll seam between the pipeline and remote
models. Replicate-hosted video models differ only in how a
GenerationRequest maps onto their input schema.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import httpx
import replicate
from replicate.exceptions import ReplicateError

from shared.config import settings
from shared.errors import ConfigError, ProviderError, RateLimitError, RetryableError
from shared.logging import get_logger
from shared.models.generation import GenerationRequest, Prediction
from shared.retry import retry_with_backoff

logger = get_logger("video_generator.providers")

_STATUS_MAP = {
    "starting": "queued",
    "processing": "processing",
    "succeeded": "succeeded",
    "failed": "failed",
    "canceled": "canceled",
}


class GenerationProvider(ABC):
    """Asynchronous remote generation: submit a request, then poll its handle."""

    name: str = "provider"

    @abstractmethod
    async def submit(self, request: Any) -> str:
        """Start a generation and return its prediction id."""

    @abstractmethod
    async def poll(self, prediction_id: str) -> Prediction:
        """Current state of a prediction."""


def _first_output_url(output: Any) -> Optional[str]:
    # Output may be a URL string or a list of URLs
    if isinstance(output, list):
        output = output[0] if output else None
    if output is None:
        return None
    return str(output)


class ReplicateProvider(GenerationProvider):
    """
    Base class for Replicate-hosted models.

    `model_ref` is either "owner/name" (latest version) or
    "owner/name:versionhash" (pinned).
    """

    model_ref: str = ""

    def __init__(self, client: Optional[replicate.Client] = None, model_ref: Optional[str] = None):
        if model_ref:
            self.model_ref = model_ref
        if not self.model_ref:
            raise ConfigError(f"{type(self).__name__} has no model reference")
        self.client = client or replicate.Client(api_token=settings.replicate_api_token)

    async def _execute_sync(self, func: Callable[[], Any]) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func)

    @staticmethod
    def _map_error(e: Exception, action: str) -> Exception:
        if isinstance(e, ReplicateError):
            status = getattr(e, "status", None)
            if status == 429:
                return RateLimitError(f"Replicate rate limit during {action}: {e}")
            if status is not None and status >= 500:
                return RetryableError(f"Replicate server error during {action}: {e}")
            return ProviderError(f"Replicate rejected {action}: {e}")
        if isinstance(e, httpx.HTTPError):
            return RetryableError(f"Network error during {action}: {e}")
        return ProviderError(f"Unexpected error during {action}: {e}")

    @abstractmethod
    def build_input(self, request: Any) -> Dict[str, Any]:
        """Model-specific input payload."""

    @retry_with_backoff(max_attempts=3, base_delay=2)
    async def submit(self, request: Any) -> str:
        payload = self.build_input(request)

        def _create():
            if ":" in self.model_ref:
                _, version = self.model_ref.split(":", 1)
                return self.client.predictions.create(version=version, input=payload)
            return self.client.predictions.create(model=self.model_ref, input=payload)

        try:
            prediction = await self._execute_sync(_create)
        except Exception as e:
            raise self._map_error(e, f"{self.name} submit") from e

        logger.info(
            f"Submitted {self.name} prediction",
            extra={"prediction_id": prediction.id, "model": self.model_ref}
        )
        return prediction.id

    async def poll(self, prediction_id: str) -> Prediction:
        try:
            prediction = await self._execute_sync(lambda: self.client.predictions.get(prediction_id))
        except Exception as e:
            raise self._map_error(e, f"{self.name} poll") from e

        return Prediction(
            id=prediction_id,
            status=_STATUS_MAP.get(prediction.status, "processing"),
            output_url=_first_output_url(prediction.output) if prediction.status == "succeeded" else None,
            error=str(prediction.error) if prediction.error else None,
        )


class KlingProvider(ReplicateProvider):
    """Kling v2.5 turbo pro: 5s or 10s clips, start_image replaces aspect_ratio."""

    name = "kling_v25_turbo"
    model_ref = "kwaivgi/kling-v2.5-turbo-pro:939cd1851c5b112f284681b57ee9b0f36d0f913ba97de5845a7eef92d52837df"

    @staticmethod
    def map_duration(seconds: int) -> int:
        return 5 if seconds <= 5 else 10

    @staticmethod
    def map_aspect_ratio(ratio: str) -> str:
        return ratio if ratio in ("16:9", "9:16", "1:1") else "16:9"

    def build_input(self, request: GenerationRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "prompt": request.prompt,
            "duration": self.map_duration(request.duration),
        }
        if request.start_image_url:
            payload["start_image"] = request.start_image_url
        else:
            payload["aspect_ratio"] = self.map_aspect_ratio(request.aspect_ratio)
        if request.negative_prompt:
            payload["negative_prompt"] = request.negative_prompt
        return payload


class VeoProvider(ReplicateProvider):
    """Veo 3.1: 4/6/8s clips at 1080p, no 1:1 support."""

    name = "veo_31"
    model_ref = "google/veo-3.1:20ebd92c5919f20e8fa2e983bdb60016a99794c9accfab496ea25a68e0dbbaad"

    @staticmethod
    def map_duration(seconds: int) -> int:
        if seconds <= 4:
            return 4
        if seconds <= 6:
            return 6
        return 8

    @staticmethod
    def map_aspect_ratio(ratio: str) -> str:
        if ratio == "1:1":
            logger.warning("Veo doesn't support 1:1 aspect ratio, defaulting to 16:9")
        return ratio if ratio in ("16:9", "9:16") else "16:9"

    def build_input(self, request: GenerationRequest) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "prompt": request.prompt,
            "duration": self.map_duration(request.duration),
            "aspect_ratio": self.map_aspect_ratio(request.aspect_ratio),
            "resolution": "1080p",
            "generate_audio": False,
        }
        if request.start_image_url:
            payload["image"] = request.start_image_url
        if request.negative_prompt:
            payload["negative_prompt"] = request.negative_prompt
        return payload


VIDEO_PROVIDERS = {
    KlingProvider.name: KlingProvider,
    VeoProvider.name: VeoProvider,
}


def get_video_provider(model_key: Optional[str] = None) -> GenerationProvider:
    """
    Build the video provider selected by VIDEO_MODEL.

    Raises:
        ConfigError: Unknown model key
    """
    model_key = model_key or settings.video_model
    provider_cls = VIDEO_PROVIDERS.get(model_key)
    if provider_cls is None:
        raise ConfigError(
            f"Unknown VIDEO_MODEL '{model_key}'. Options: {', '.join(sorted(VIDEO_PROVIDERS))}"
        )
    return provider_cls()
