"""
Prediction polling.

One loop shared by every GenerationProvider consumer: wait, poll, repeat
until the prediction is terminal or the attempt horizon runs out.
"""

import asyncio
from typing import Optional, Union
from uuid import UUID

from shared.errors import (
    GenerationTimeoutError,
    JobCancelledError,
    ProviderError,
    RetryableError,
)
from shared.logging import get_logger

logger = get_logger("polling")

# Progress is logged once per minute at the default 5s interval
LOG_EVERY_N_ATTEMPTS = 12


async def wait_for_prediction(
    provider,
    prediction_id: str,
    *,
    max_attempts: int,
    interval: float,
    label: str,
    job_id: Optional[Union[UUID, str]] = None,
    scene_number: Optional[int] = None
) -> str:
    """
    Poll a prediction until it reaches a terminal status.

    The first poll happens immediately; later polls wait `interval` seconds
    first. A failed poll is logged and counts as an attempt.

    Args:
        provider: GenerationProvider that issued the prediction
        prediction_id: Handle returned by provider.submit()
        max_attempts: Poll horizon
        interval: Seconds between polls
        label: Human-readable name for logs ("scene 2", "music")
        job_id: Job ID for logging
        scene_number: Attached to ProviderError for scene renders

    Returns:
        Media URL of the succeeded prediction

    Raises:
        ProviderError: Prediction failed or was canceled
        GenerationTimeoutError: max_attempts polls without a terminal status
        JobCancelledError: The awaiting task was cancelled mid-poll
    """
    log_extra = {"job_id": str(job_id) if job_id else None, "prediction_id": prediction_id, "label": label}

    for attempt in range(max_attempts):
        try:
            if attempt > 0:
                await asyncio.sleep(interval)
            try:
                prediction = await provider.poll(prediction_id)
            except RetryableError as e:
                logger.warning(f"Poll failed for {label}, continuing: {e}", extra={**log_extra, "attempt": attempt + 1})
                continue
        except asyncio.CancelledError as e:
            logger.info(f"Polling cancelled for {label}", extra={**log_extra, "attempt": attempt + 1})
            raise JobCancelledError(f"Cancelled while waiting for {label}", job_id=job_id) from e

        if prediction.status == "succeeded":
            if not prediction.output_url:
                raise ProviderError(
                    f"{label} succeeded without an output URL",
                    job_id=job_id,
                    scene_number=scene_number,
                    prediction_id=prediction_id
                )
            logger.info(f"{label} succeeded after {attempt + 1} polls", extra=log_extra)
            return prediction.output_url

        if prediction.status in ("failed", "canceled"):
            reason = prediction.error or "Unknown error (no error message from provider)"
            raise ProviderError(
                f"{label} {prediction.status}: {reason}",
                job_id=job_id,
                code="PROVIDER_CANCELED" if prediction.status == "canceled" else None,
                scene_number=scene_number,
                prediction_id=prediction_id
            )

        if (attempt + 1) % LOG_EVERY_N_ATTEMPTS == 0:
            logger.info(
                f"Still waiting for {label}",
                extra={**log_extra, "attempt": attempt + 1, "max_attempts": max_attempts, "status": prediction.status}
            )

    raise GenerationTimeoutError(
        f"{label} timed out after {max_attempts} attempts",
        job_id=job_id,
        attempts=max_attempts,
        prediction_id=prediction_id
    )
