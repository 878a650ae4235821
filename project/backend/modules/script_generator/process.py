"""
Script generation stage.

One OpenAI chat completion in JSON mode, parsed into a validated Script.
"""

import json
from typing import Any, Dict, Optional

from openai import AsyncOpenAI, APIConnectionError, APIError, APITimeoutError
from openai import RateLimitError as OpenAIRateLimitError
from pydantic import ValidationError as PydanticValidationError

from shared.config import settings
from shared.errors import ProviderError, RateLimitError, RetryableError
from shared.logging import get_logger
from shared.models.job import Job
from shared.models.scene import Script
from shared.openai_client import get_openai_client
from shared.retry import retry_with_backoff
from modules.script_generator.prompts import SYSTEM_PROMPT, build_user_prompt

logger = get_logger("script_generator")

# Allowed gap between requested and scripted duration, in seconds
DURATION_TOLERANCE = 5


def extract_json(content: str) -> str:
    """Strip a markdown code fence if the model wrapped its JSON in one."""
    content = content.strip()
    if content.startswith("```"):
        start = content.find("\n") + 1
        end = content.find("```", start)
        return content[start:end if end != -1 else len(content)].strip()
    return content


def parse_script(content: str, requested_duration: int, job_id=None) -> Script:
    """
    Parse and validate model output.

    Raises:
        RetryableError: Output is not valid JSON or violates the Script schema
    """
    try:
        data: Dict[str, Any] = json.loads(extract_json(content))
    except json.JSONDecodeError as e:
        raise RetryableError(f"Invalid JSON from LLM: {str(e)}", job_id=job_id) from e

    try:
        script = Script.model_validate(data)
    except PydanticValidationError as e:
        raise RetryableError(f"LLM script failed validation: {e.errors()[:3]}", job_id=job_id) from e

    if abs(script.total_duration - requested_duration) > DURATION_TOLERANCE:
        raise RetryableError(
            f"total duration {script.total_duration} doesn't match requested {requested_duration}",
            job_id=job_id
        )
    return script


@retry_with_backoff(max_attempts=3, base_delay=2)
async def process(job: Job, client: Optional[AsyncOpenAI] = None) -> Script:
    """
    Generate the multi-scene script for a job.

    Raises:
        RetryableError: Transient failure or unusable output after retries
        ProviderError: Non-retryable API error
    """
    client = client or get_openai_client()
    user_prompt = build_user_prompt(job)

    logger.info(
        "Calling LLM for script generation",
        extra={"job_id": str(job.id), "model": settings.script_model, "duration": job.duration}
    )

    try:
        response = await client.chat.completions.create(
            model=settings.script_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            response_format={"type": "json_object"},
            temperature=0.7,
            max_tokens=8000,
            timeout=90.0,
        )
    except OpenAIRateLimitError as e:
        raise RateLimitError(f"Rate limit error: {str(e)}", job_id=job.id) from e
    except (APITimeoutError, APIConnectionError) as e:
        raise RetryableError(f"API timeout or connection error: {str(e)}", job_id=job.id) from e
    except APIError as e:
        status_code = getattr(e, "status_code", None)
        if status_code and status_code >= 500:
            raise RetryableError(f"Retryable API error: {str(e)}", job_id=job.id) from e
        raise ProviderError(f"OpenAI API error: {str(e)}", job_id=job.id) from e

    content = response.choices[0].message.content
    if not content:
        raise RetryableError("Empty response from LLM", job_id=job.id)

    script = parse_script(content, job.duration, job_id=job.id)
    logger.info(
        "Script generated",
        extra={"job_id": str(job.id), "title": script.title, "scene_count": len(script.scenes)}
    )
    return script
