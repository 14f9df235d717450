from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from pronunciation.domain.models import (
    NewPracticeSession,
    PracticeSessionRecord,
    PromptAudioRecord,
    ProviderScore,
    StoredAudio,
    WordAudioRecord,
)


class PromptAudioRepositoryInterface(ABC):
    """Persistence contract for cached prompt audio"""

    @abstractmethod
    async def get(self, prompt_index: int) -> Optional[PromptAudioRecord]:
        ...

    @abstractmethod
    async def claim(
        self, prompt_index: int, prompt_text: str, voice: str
    ) -> Optional[UUID]:
        """Insert a pending row if none exists; returns the claim token when this caller won the key."""

    @abstractmethod
    async def mark_ready(
        self, prompt_index: int, claim_id: UUID, audio: StoredAudio
    ) -> PromptAudioRecord:
        """Publish the audio if ``claim_id`` still holds the pending row, else raise ClaimLostError."""

    @abstractmethod
    async def release(self, prompt_index: int, claim_id: UUID) -> None:
        """Drop the pending claim held by ``claim_id`` so another caller can generate."""

    @abstractmethod
    async def delete(self, prompt_index: int) -> Optional[PromptAudioRecord]:
        ...

    @abstractmethod
    async def list_ready(self) -> List[PromptAudioRecord]:
        ...


class WordAudioRepositoryInterface(ABC):
    """Persistence contract for cached word audio"""

    @abstractmethod
    async def get(self, word: str) -> Optional[WordAudioRecord]:
        ...

    @abstractmethod
    async def claim(self, word: str, voice: str) -> Optional[UUID]:
        """Insert a pending row if none exists; returns the claim token when this caller won the key."""

    @abstractmethod
    async def mark_ready(self, word: str, claim_id: UUID, audio: StoredAudio) -> WordAudioRecord:
        ...

    @abstractmethod
    async def release(self, word: str, claim_id: UUID) -> None:
        ...

    @abstractmethod
    async def increment_usage(self, word: str) -> int:
        """Atomically bump times_used and return the new value."""

    @abstractmethod
    async def most_used(self, limit: int = 50) -> List[WordAudioRecord]:
        ...

    @abstractmethod
    async def count_ready(self) -> int:
        ...


class PracticeSessionRepositoryInterface(ABC):
    """Append-only persistence contract for practice sessions"""

    @abstractmethod
    async def create(self, session: NewPracticeSession) -> PracticeSessionRecord:
        ...

    @abstractmethod
    async def get(self, session_id: UUID) -> Optional[PracticeSessionRecord]:
        ...

    @abstractmethod
    async def latest_for_prompt(
        self, user_id: str, prompt_index: int
    ) -> Optional[PracticeSessionRecord]:
        ...

    @abstractmethod
    async def recent(self, user_id: str, limit: int = 10) -> List[PracticeSessionRecord]:
        ...

    @abstractmethod
    async def list_for_user(self, user_id: str) -> List[PracticeSessionRecord]:
        ...


class ObjectStorageInterface(ABC):
    """Durable blob storage for audio files"""

    @abstractmethod
    async def upload(
        self,
        local_path: str,
        *,
        folder: str,
        public_id: str,
        user_id: Optional[str] = None,
    ) -> StoredAudio:
        ...

    @abstractmethod
    async def download(self, public_id: str, local_path: str) -> str:
        ...

    @abstractmethod
    async def delete(self, public_id: str) -> None:
        """Best-effort removal; never raises."""


class SpeechSynthesizerInterface(ABC):
    """Text-to-speech provider writing audio to a local file"""

    @abstractmethod
    async def synthesize(
        self,
        text: str,
        *,
        voice: Optional[str] = None,
        speed: float = 1.0,
    ) -> str:
        ...

    @property
    @abstractmethod
    def default_voice(self) -> str:
        ...


class PronunciationScorerInterface(ABC):
    """External pronunciation quality scorer"""

    @abstractmethod
    async def score(self, audio_path: str, reference_text: str, user_id: str) -> ProviderScore:
        ...


class TranscriberInterface(ABC):
    """External speech-to-text provider"""

    @abstractmethod
    async def transcribe(self, audio_path: str, language_hint: str = "en") -> str:
        ...
