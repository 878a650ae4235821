"""
OpenAI text-to-speech client.

Synthesis always happens at a single speed; variable-speed segments are
applied afterwards with ffmpeg.
"""

from typing import Dict, Optional

from openai import AsyncOpenAI, APIConnectionError, APIStatusError, APITimeoutError
from openai import RateLimitError as OpenAIRateLimitError

from shared.config import settings
from shared.errors import ProviderError, RateLimitError, RetryableError, ValidationError
from shared.logging import get_logger
from shared.openai_client import get_openai_client
from shared.retry import retry_with_backoff

logger = get_logger("narrator.tts")

VOICE_MAP: Dict[str, str] = {
    "male": "onyx",
    "female": "nova",
}


def resolve_voice(voice: Optional[str]) -> str:
    """
    Map a voice selector to an OpenAI voice id.

    Raises:
        ValidationError: Unknown selector
    """
    openai_voice = VOICE_MAP.get((voice or "").lower())
    if openai_voice is None:
        raise ValidationError(
            f"Invalid voice selection: {voice!r} (expected one of {', '.join(sorted(VOICE_MAP))})"
        )
    return openai_voice


class OpenAITTS:
    """TTS provider: synthesize(text, voice, speed) -> mp3 bytes."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None):
        self._client = client
        self.model = model or settings.tts_model

    @property
    def client(self) -> AsyncOpenAI:
        return self._client or get_openai_client()

    async def synthesize(self, text: str, voice: str, speed: float = 1.0) -> bytes:
        """
        Synthesize speech.

        Raises:
            ValidationError: Empty text or unknown voice (not retried)
            RetryableError: Transient failure after retries
            ProviderError: Non-retryable API error
        """
        if not text or not text.strip():
            raise ValidationError("Narration text is empty")
        openai_voice = resolve_voice(voice)
        return await self._call(text, openai_voice, speed)

    @retry_with_backoff(max_attempts=3, base_delay=1)
    async def _call(self, text: str, openai_voice: str, speed: float) -> bytes:
        logger.info(
            "Synthesizing narration",
            extra={"voice": openai_voice, "model": self.model, "text_length": len(text), "speed": speed}
        )
        try:
            response = await self.client.audio.speech.create(
                model=self.model,
                voice=openai_voice,
                input=text,
                response_format="mp3",
                speed=speed,
            )
        except OpenAIRateLimitError as e:
            raise RateLimitError(f"TTS rate limit: {str(e)}") from e
        except (APITimeoutError, APIConnectionError) as e:
            raise RetryableError(f"TTS network error: {str(e)}") from e
        except APIStatusError as e:
            if e.status_code >= 500:
                raise RetryableError(f"TTS server error: {str(e)}") from e
            raise ProviderError(f"TTS request rejected: {str(e)}") from e

        audio = response.content
        if not audio:
            raise RetryableError("TTS returned empty audio")
        return audio
