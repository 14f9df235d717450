"""Pronunciation scoring pipeline package.

`ingestion` holds the HTTP-aware upload checks used by the controller;
`flow` documents the stages `PronunciationScoringService` executes.
"""

from .flow import PipelineStage, ScoringPipeline
from .ingestion import resolve_content_type, save_upload

__all__ = [
    "PipelineStage",
    "ScoringPipeline",
    "resolve_content_type",
    "save_upload",
]
