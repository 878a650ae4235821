"""
Generation provider data models.

Request and prediction-handle types shared by every provider variant.
"""

from typing import Literal, Optional
from pydantic import BaseModel, Field

PredictionStatus = Literal["queued", "processing", "succeeded", "failed", "canceled"]

TERMINAL_STATUSES = ("succeeded", "failed", "canceled")


class GenerationRequest(BaseModel):
    """Video generation request for a single scene."""

    prompt: str
    duration: int = Field(gt=0)
    aspect_ratio: str = "16:9"
    start_image_url: Optional[str] = None
    negative_prompt: Optional[str] = None


class MusicRequest(BaseModel):
    """Background music request derived from the script."""

    prompt: str
    duration: int = Field(gt=0)
    mood: str = ""
    style: str = ""


class Prediction(BaseModel):
    """Provider-assigned handle for an in-flight generation, mutated only by polling."""

    id: str
    status: PredictionStatus = "queued"
    output_url: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
