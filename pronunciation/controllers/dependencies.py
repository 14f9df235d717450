"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from pronunciation.application.interfaces import (
    ObjectStorageInterface,
    PronunciationScorerInterface,
    SpeechSynthesizerInterface,
    TranscriberInterface,
)
from pronunciation.database import get_session
from pronunciation.infrastructure.persistence.repositories_sqlalchemy import (
    SQLAlchemyPracticeSessionRepository,
    SQLAlchemyPromptAudioRepository,
    SQLAlchemyWordAudioRepository,
)
from pronunciation.services.prompt_audio import PromptAudioService
from pronunciation.services.pronunciation_scoring import PronunciationScoringService
from pronunciation.services.speechace import SpeechaceClient
from pronunciation.services.storage import S3AudioStorage
from pronunciation.services.transcribe import TranscribeService
from pronunciation.services.tts import PollyTtsService
from pronunciation.services.word_audio import WordAudioService
from pronunciation.utils import AuthenticationError, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_current_user_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> str:
    """Resolve the user id carried in the bearer token ``sub`` claim."""

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = decode_access_token(credentials.credentials)
    except AuthenticationError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None
    return payload.sub


CurrentUserDep = Annotated[str, Depends(get_current_user_id)]


@lru_cache
def get_storage() -> ObjectStorageInterface:
    return S3AudioStorage()


@lru_cache
def get_synthesizer() -> SpeechSynthesizerInterface:
    return PollyTtsService()


@lru_cache
def get_scorer() -> PronunciationScorerInterface:
    return SpeechaceClient()


@lru_cache
def get_transcriber() -> TranscriberInterface:
    return TranscribeService()


StorageDep = Annotated[ObjectStorageInterface, Depends(get_storage)]
SynthesizerDep = Annotated[SpeechSynthesizerInterface, Depends(get_synthesizer)]


def get_prompt_audio_service(
    session: SessionDep,
    storage: StorageDep,
    synthesizer: SynthesizerDep,
) -> PromptAudioService:
    return PromptAudioService(SQLAlchemyPromptAudioRepository(session), storage, synthesizer)


def get_word_audio_service(
    session: SessionDep,
    storage: StorageDep,
    synthesizer: SynthesizerDep,
) -> WordAudioService:
    return WordAudioService(SQLAlchemyWordAudioRepository(session), storage, synthesizer)


def get_scoring_service(
    session: SessionDep,
    storage: StorageDep,
    scorer: Annotated[PronunciationScorerInterface, Depends(get_scorer)],
    transcriber: Annotated[TranscriberInterface, Depends(get_transcriber)],
) -> PronunciationScoringService:
    return PronunciationScoringService(
        SQLAlchemyPracticeSessionRepository(session), storage, scorer, transcriber
    )


PromptAudioServiceDep = Annotated[PromptAudioService, Depends(get_prompt_audio_service)]
WordAudioServiceDep = Annotated[WordAudioService, Depends(get_word_audio_service)]
ScoringServiceDep = Annotated[PronunciationScoringService, Depends(get_scoring_service)]


__all__ = [
    "CurrentUserDep",
    "PromptAudioServiceDep",
    "ScoringServiceDep",
    "SessionDep",
    "WordAudioServiceDep",
    "get_current_user_id",
    "get_prompt_audio_service",
    "get_scoring_service",
    "get_word_audio_service",
]
