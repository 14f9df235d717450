"""Service layer: audio caches, the scoring orchestrator and provider adapters."""

from .audio_cache import AudioCacheTimeoutError
from .prompt_audio import PromptAudioService
from .pronunciation_scoring import PronunciationScoringService
from .resilience import ExternalServiceError, RetryPolicy, call_with_retry
from .speechace import ScoringProviderError, SpeechaceClient, parse_word_scores
from .storage import S3AudioStorage, StorageError
from .transcribe import TranscribeService, TranscriptionError
from .tts import PollyTtsService, SpeechSynthesisError
from .word_audio import WordAudioService

__all__ = [
    "AudioCacheTimeoutError",
    "ExternalServiceError",
    "PollyTtsService",
    "PromptAudioService",
    "PronunciationScoringService",
    "RetryPolicy",
    "S3AudioStorage",
    "ScoringProviderError",
    "SpeechSynthesisError",
    "SpeechaceClient",
    "StorageError",
    "TranscribeService",
    "TranscriptionError",
    "WordAudioService",
    "call_with_retry",
    "parse_word_scores",
]
