"""SQLAlchemy models for the MVC architecture."""

from .base import Base
from .practice_session import PracticeSession  # noqa: F401
from .prompt_audio import PromptAudio  # noqa: F401
from .word_audio import WordAudio  # noqa: F401

__all__ = [
    "Base",
    "PromptAudio",
    "WordAudio",
    "PracticeSession",
]
