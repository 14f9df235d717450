"""High-level orchestration map for the pronunciation scoring pipeline.

The HTTP controller in ``pronunciation/controllers/pronunciation.py`` accepts
the upload; ``PronunciationScoringService`` runs everything after it. This
module documents the canonical execution order so team members can navigate
the codebase more easily:

1. ``ingestion`` - validate the upload and spool it to a temp file.
2. ``upload`` - persist the raw recording to S3.
3. ``fetch`` - download the stored MP3 copy for scoring.
4. ``scoring`` - call Speechace with the reference text.
5. ``transcription`` - call Amazon Transcribe on the original recording.
6. ``persistence`` - store one practice session row.
7. ``cleanup`` - remove temp files; remove the upload if a later stage failed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class PipelineStage:
    """Human-readable description of one stage in the scoring pipeline."""

    order: int
    name: str
    module: str
    summary: str


class ScoringPipeline:
    """Utility wrapper for documenting the `/api/pronunciation/score` flow."""

    _STAGES: List[PipelineStage] = [
        PipelineStage(
            1,
            "Ingestion",
            "pronunciation.pipelines.scoring.ingestion",
            "Check MIME type, enforce the size limit and spool the upload to disk.",
        ),
        PipelineStage(
            2,
            "Durable Upload",
            "pronunciation.services.storage",
            "Transcode to MP3 and store the recording under user-recordings/<user>/.",
        ),
        PipelineStage(
            3,
            "Scoring Copy",
            "pronunciation.services.storage",
            "Download the stored MP3 so the scorer receives a compatible file.",
        ),
        PipelineStage(
            4,
            "Pronunciation Scoring",
            "pronunciation.services.speechace",
            "Score against the reference text and normalize word/phone timings.",
        ),
        PipelineStage(
            5,
            "Transcription",
            "pronunciation.services.transcribe",
            "Transcribe the original audio; fall back to the reference text on failure.",
        ),
        PipelineStage(
            6,
            "Session Persistence",
            "pronunciation.infrastructure.persistence.repositories_sqlalchemy",
            "Append the practice session with overall, fluency and word scores.",
        ),
        PipelineStage(
            7,
            "Cleanup",
            "pronunciation.services.pronunciation_scoring",
            "Delete temp files and, when a later stage failed, the stored recording.",
        ),
    ]

    @classmethod
    def describe(cls) -> Iterable[PipelineStage]:
        """Expose the ordered list of stages for debugging and documentation."""

        return tuple(cls._STAGES)


__all__ = ["ScoringPipeline", "PipelineStage"]
