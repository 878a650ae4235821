"""
Music generator module.

Produces the background track for a job from the script's mood and style.
"""

from modules.music_generator.process import process
from modules.music_generator.provider import MinimaxMusicProvider

__all__ = ["process", "MinimaxMusicProvider"]
