"""
Background music provider (MiniMax Music 1.5 on Replicate).
"""

from typing import Any, Dict, List

from shared.config import settings
from shared.models.generation import MusicRequest
from modules.video_generator.providers import ReplicateProvider

_STOP_WORDS = {"a", "an", "the", "in", "on", "at", "to", "for", "of", "with"}

MAX_PROMPT_LENGTH = 300


def extract_keywords(text: str, max_words: int = 3) -> List[str]:
    """First few meaningful words of a prompt, lowercased, stop words removed."""
    keywords = []
    for word in text.lower().split():
        word = word.strip(".,!?;:")
        if len(word) < 2 or word in _STOP_WORDS:
            continue
        keywords.append(word)
        if len(keywords) >= max_words:
            break
    return keywords


def build_music_prompt(title: str, mood: str, style: str) -> str:
    """Style + mood + context, clamped to the model's 10-300 character window."""
    style = style[:1].upper() + style[1:] if style else ""
    keywords = " ".join(extract_keywords(title))
    if keywords:
        prompt = f"{style} {mood} {keywords} background music"
    else:
        prompt = f"{style} {mood} music"
    prompt = " ".join(prompt.split())

    if len(prompt) < 10:
        prompt = f"{prompt} background music for video"
    if len(prompt) > MAX_PROMPT_LENGTH:
        prompt = prompt[:MAX_PROMPT_LENGTH - 3] + "..."
    return prompt


def build_lyrics(duration: int) -> str:
    """Instrumental section markers sized to the track length."""
    if duration <= 15:
        sections = ["intro", "verse", "outro"]
    elif duration <= 30:
        sections = ["intro", "verse", "chorus", "outro"]
    elif duration <= 60:
        sections = ["intro", "verse", "chorus", "verse", "chorus", "outro"]
    else:
        sections = ["intro", "verse", "chorus", "bridge", "verse", "chorus", "outro"]
    return "\n".join(f"[{s}]" for s in sections)


class MinimaxMusicProvider(ReplicateProvider):
    """MiniMax music model; output is a single mp3 URL."""

    name = "minimax_music"

    def __init__(self, client=None, model_ref=None):
        super().__init__(client=client, model_ref=model_ref or settings.music_model)

    def build_input(self, request: MusicRequest) -> Dict[str, Any]:
        return {
            "prompt": build_music_prompt(request.prompt, request.mood, request.style),
            "lyrics": build_lyrics(request.duration),
            "sample_rate": 44100,
            "bitrate": 256000,
            "audio_format": "mp3",
        }
