"""
Composer module.

Final stage of the pipeline. Concatenates scene clips, burns in the
disclosure overlay and applies the configured audio composition mode.
"""

from modules.composer.process import process, CompositionResult

__all__ = ["process", "CompositionResult"]
