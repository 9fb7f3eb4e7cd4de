"""
Murmur - Hotkey Voice Dictation

Records on a hotkey, transcribes with a cloud or local speech provider,
optionally cleans the text up with a language model and pastes it at the
cursor.
"""

__version__ = "1.0.0"

from murmur.app import DictationApp
from murmur.config import Config

__all__ = ["DictationApp", "Config", "__version__"]
