"""
Clip regenerator module.

Versioned re-rendering of one scene, or of a scene and everything after it,
for an existing job.
"""

from modules.clip_regenerator.process import (
    RegenerationController,
    RegenerationResult,
    validate_regeneration,
)

__all__ = ["RegenerationController", "RegenerationResult", "validate_regeneration"]
