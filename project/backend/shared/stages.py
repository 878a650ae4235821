"""
Pipeline stage names and progress mapping.

Stage is the string tag persisted on the job; progress is always derived
from it so the two can never disagree.
"""

import re
from typing import Optional

SCRIPT_GENERATING = "script_generating"
SCRIPT_COMPLETE = "script_complete"
NARRATOR_GENERATING = "narrator_generating"
NARRATOR_COMPLETE = "narrator_complete"
AUDIO_GENERATING = "audio_generating"
AUDIO_COMPLETE = "audio_complete"
COMPOSING = "composing"
COMPLETE = "complete"

DEFAULT_SCENE_COUNT = 3

# Scene rendering occupies progress 8..80
_SCENE_BASE = 8
_SCENE_SPAN = 72

_FIXED_PROGRESS = {
    SCRIPT_GENERATING: 2,
    SCRIPT_COMPLETE: 5,
    NARRATOR_GENERATING: 6,
    NARRATOR_COMPLETE: 8,
    AUDIO_GENERATING: 82,
    AUDIO_COMPLETE: 85,
    COMPOSING: 92,
    COMPLETE: 100,
}

_SCENE_STAGE = re.compile(r"^scene_(\d+)_(generating|complete)$")


def scene_generating(scene_number: int) -> str:
    return f"scene_{scene_number}_generating"


def scene_complete(scene_number: int) -> str:
    return f"scene_{scene_number}_complete"


def parse_scene_stage(stage: str) -> Optional[int]:
    """Scene number of a scene_N_* stage, or None for any other stage."""
    match = _SCENE_STAGE.match(stage or "")
    return int(match.group(1)) if match else None


def progress_for_stage(stage: Optional[str], total_scenes: Optional[int] = None) -> int:
    """
    Progress percentage for a stage name.

    Args:
        stage: Stage tag, e.g. "scene_2_generating"
        total_scenes: Scene count of the job's script (defaults to 3 when unknown)

    Returns:
        Integer in 0..100; unknown stages map to 0
    """
    if not stage:
        return 0
    if stage in _FIXED_PROGRESS:
        return _FIXED_PROGRESS[stage]

    match = _SCENE_STAGE.match(stage)
    if not match:
        return 0

    total = total_scenes if total_scenes and total_scenes > 0 else DEFAULT_SCENE_COUNT
    scene_number = int(match.group(1))
    if match.group(2) == "generating":
        return _SCENE_BASE + (scene_number - 1) * _SCENE_SPAN // total
    if scene_number >= total:
        return _SCENE_BASE + _SCENE_SPAN
    return _SCENE_BASE + scene_number * _SCENE_SPAN // total
