"""
Data models for the ad generation pipeline.

This module exports all Pydantic models used across pipeline modules.
"""

from .job import Job, JobStatus
from .scene import Scene, Script, AudioSpec, ScriptMetadata
from .generation import (
    GenerationRequest,
    MusicRequest,
    Prediction,
    PredictionStatus,
    TERMINAL_STATUSES
)

__all__ = [
    # Job models
    "Job",
    "JobStatus",
    # Script models
    "Scene",
    "Script",
    "AudioSpec",
    "ScriptMetadata",
    # Generation models
    "GenerationRequest",
    "MusicRequest",
    "Prediction",
    "PredictionStatus",
    "TERMINAL_STATUSES",
]
