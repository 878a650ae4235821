"""
Script generator module.

First pipeline stage: turns the user's prompt into a multi-scene Script.
"""

from modules.script_generator.process import process

__all__ = ["process"]
