"""
Narrator module.

Text-to-speech narration with a sped-up trailing disclosure segment.
"""

from modules.narrator.process import process, NarrationResult
from modules.narrator.tts import OpenAITTS

__all__ = ["process", "NarrationResult", "OpenAITTS"]
