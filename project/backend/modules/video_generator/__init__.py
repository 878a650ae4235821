"""
Video generator module.

Per-scene rendering through a polymorphic generation provider, with
continuity frames chaining each scene to the next.
"""

from modules.video_generator.providers import GenerationProvider, get_video_provider
from modules.video_generator.renderer import SceneRenderer, SceneResult, resolve_start_image

__all__ = [
    "GenerationProvider",
    "get_video_provider",
    "SceneRenderer",
    "SceneResult",
    "resolve_start_image",
]
