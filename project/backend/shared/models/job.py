"""
Job data model.

A Job is the persisted record of one ad generation request: request
parameters, lifecycle (status/stage/progress) and accumulated outputs.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional
from uuid import UUID, uuid4
from pydantic import BaseModel, Field, field_serializer

from shared.models.scene import Scene

JobStatus = Literal["pending", "processing", "completed", "failed"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Job(BaseModel):
    """Job model representing an ad generation job."""

    id: UUID = Field(default_factory=uuid4)
    user_id: UUID
    status: JobStatus = "pending"
    stage: Optional[str] = None
    progress: int = Field(default=0, ge=0, le=100, description="Progress percentage 0-100")
    stage_metadata: Dict[str, Any] = Field(default_factory=dict, description="Metadata of the latest stage event")

    # Request parameters
    prompt: str
    duration: int = Field(default=30, gt=0, description="Requested duration in seconds")
    aspect_ratio: str = "16:9"
    voice: Optional[str] = Field(default=None, description="Narrator voice selector: male/female")
    narrator_script: Optional[str] = None
    side_effects_text: Optional[str] = None
    side_effects_start_time: Optional[float] = None
    start_image_url: Optional[str] = Field(default=None, description="Caller image for scene 1")
    product_image_url: Optional[str] = Field(default=None, description="Caller image for the final scene")
    scene_image_overrides: Dict[int, str] = Field(default_factory=dict)

    # Accumulated outputs
    script_id: Optional[UUID] = None
    title: Optional[str] = None
    scenes: List[Scene] = Field(default_factory=list)
    scene_video_urls: List[str] = Field(default_factory=list)
    thumbnail_url: Optional[str] = None
    audio_url: Optional[str] = None
    narrator_audio_url: Optional[str] = None
    video_key: Optional[str] = None
    video_url: Optional[str] = None
    composition_mode: Optional[Literal["mux", "separate"]] = None
    scene_versions: Dict[int, int] = Field(default_factory=dict)

    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    completed_at: Optional[datetime] = None

    def image_override(self, scene_number: int, total_scenes: int) -> Optional[str]:
        """
        Caller-supplied start image for a scene, if any.

        Explicit per-scene overrides win; otherwise the start image seeds
        scene 1 and the product image seeds the final scene.
        """
        if scene_number in self.scene_image_overrides:
            return self.scene_image_overrides[scene_number]
        if scene_number == total_scenes and self.product_image_url:
            return self.product_image_url
        if scene_number == 1 and self.start_image_url:
            return self.start_image_url
        return None

    def scene_version(self, scene_number: int) -> int:
        """Current version of a scene; scenes never regenerated are version 1."""
        return self.scene_versions.get(scene_number, 1)

    @field_serializer("id", "user_id", "script_id")
    def serialize_uuid(self, value: Optional[UUID]) -> Optional[str]:
        """Serialize UUID to string."""
        return str(value) if value else None

    @field_serializer("created_at", "updated_at", "completed_at")
    def serialize_datetime(self, value: Optional[datetime]) -> Optional[str]:
        """Serialize datetime to ISO format string."""
        return value.isoformat() if value else None
