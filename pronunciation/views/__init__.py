"""Pydantic schemas used as views in the MVC architecture."""

from .common import ErrorResponse
from .pronunciation import (
    ApiResponse,
    AudioLookupView,
    CachedPromptView,
    HistoryItemView,
    PhoneScoreView,
    PopularWordView,
    PopularWordsView,
    PromptView,
    ScoringResultView,
    UserStatsView,
    WordScoreView,
)

__all__ = [
    "ApiResponse",
    "AudioLookupView",
    "CachedPromptView",
    "ErrorResponse",
    "HistoryItemView",
    "PhoneScoreView",
    "PopularWordView",
    "PopularWordsView",
    "PromptView",
    "ScoringResultView",
    "UserStatsView",
    "WordScoreView",
]
