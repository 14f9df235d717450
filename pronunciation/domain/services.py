from typing import Iterable

from .models import (
    MAX_WORD_LENGTH,
    PROMPT_INDEX_MAX,
    PROMPT_INDEX_MIN,
    PracticeSessionRecord,
    UserStats,
)


class InvalidPromptIndexError(ValueError):
    """Raised when a prompt index falls outside the fixed catalog range."""


class InvalidWordError(ValueError):
    """Raised when a word lookup key is empty after normalization."""


class ClaimLostError(LookupError):
    """Raised when a cache claim was taken over before the generator finished."""


class PracticeDomainService:
    """Domain rules for prompts, cached words and practice statistics"""

    @staticmethod
    def ensure_prompt_index(prompt_index: int) -> int:
        """Reject prompt indices outside 0-15"""
        if not PROMPT_INDEX_MIN <= prompt_index <= PROMPT_INDEX_MAX:
            raise InvalidPromptIndexError(
                f"Invalid promptIndex {prompt_index}. "
                f"Must be between {PROMPT_INDEX_MIN} and {PROMPT_INDEX_MAX}"
            )
        return prompt_index

    @staticmethod
    def normalize_word(word: str) -> str:
        """Lowercase and trim a word cache key"""
        normalized = (word or "").strip().lower()
        if not normalized:
            raise InvalidWordError("Word parameter is required")
        if len(normalized) > MAX_WORD_LENGTH:
            raise InvalidWordError(f"Word must be at most {MAX_WORD_LENGTH} characters")
        return normalized

    @staticmethod
    def summarize(sessions: Iterable[PracticeSessionRecord]) -> UserStats:
        """Reduce a user's sessions into count/average/min/max and attempted prompts"""
        sessions = list(sessions)
        if not sessions:
            return UserStats()

        scores = [s.overall_score for s in sessions]
        completed_prompts: list[int] = []
        for s in sessions:
            if s.prompt_index not in completed_prompts:
                completed_prompts.append(s.prompt_index)

        return UserStats(
            total_sessions=len(sessions),
            average_score=round(sum(scores) / len(scores)),
            highest_score=max(scores),
            lowest_score=min(scores),
            completed_prompts=sorted(completed_prompts),
        )
