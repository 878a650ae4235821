"""
Script and scene data models.

Defines Script, Scene, AudioSpec and ScriptMetadata as produced by the
script generator and consumed by the scene renderer.
"""

from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class Scene(BaseModel):
    """One shot of the advertisement."""

    scene_number: int = Field(ge=1, description="1-based, contiguous")
    start_time: float = Field(default=0.0, ge=0)
    duration: float = Field(gt=0)
    generation_prompt: str
    start_image_url: Optional[str] = Field(
        default=None,
        description="Continuity seed or caller-supplied image for this scene"
    )

    # Descriptive attributes, passed through to the provider as-is
    location: str = ""
    action: str = ""
    shot_type: str = ""
    camera_angle: str = ""
    camera_move: str = ""
    lighting: str = ""
    color_grade: str = ""
    mood: str = ""
    visual_style: str = ""
    transition_in: str = ""
    transition_out: str = ""

    @field_validator("generation_prompt")
    @classmethod
    def validate_generation_prompt(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("generation_prompt must not be empty")
        return v


class AudioSpec(BaseModel):
    """Audio requirements derived from the script."""

    enable_audio: bool = True
    music_mood: str = ""
    music_style: str = ""
    narrator_script: str = ""
    side_effects_text: str = ""
    side_effects_start_time: float = 0.0


class ScriptMetadata(BaseModel):
    """Marketing metadata extracted from the prompt."""

    product_name: str = ""
    target_audience: str = ""
    call_to_action: str = ""
    keywords: List[str] = Field(default_factory=list)


class Script(BaseModel):
    """Complete multi-scene script."""

    title: str
    total_duration: int = Field(gt=0)
    scenes: List[Scene]
    audio_spec: AudioSpec = Field(default_factory=AudioSpec)
    metadata: ScriptMetadata = Field(default_factory=ScriptMetadata)

    @field_validator("scenes")
    @classmethod
    def validate_contiguous(cls, v: List[Scene]) -> List[Scene]:
        """Scene numbers must run 1..N in order."""
        if not v:
            raise ValueError("script must contain at least one scene")
        for index, scene in enumerate(v, start=1):
            if scene.scene_number != index:
                raise ValueError(
                    f"scene {index} has incorrect scene_number {scene.scene_number}"
                )
        return v
