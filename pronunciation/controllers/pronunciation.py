"""Pronunciation practice endpoints.

For a stage-by-stage map of `POST /api/pronunciation/score` see
`pronunciation.pipelines.scoring.flow.ScoringPipeline`. The controller only
validates the upload; `PronunciationScoringService` does the rest.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional
from uuid import UUID

from fastapi import APIRouter, File, Form, HTTPException, Query, UploadFile, status

from pronunciation.controllers.dependencies import (
    CurrentUserDep,
    PromptAudioServiceDep,
    ScoringServiceDep,
    WordAudioServiceDep,
)
from pronunciation.domain.services import (
    InvalidPromptIndexError,
    InvalidWordError,
    PracticeDomainService,
)
from pronunciation.pipelines.scoring import ScoringPipeline, resolve_content_type, save_upload
from pronunciation.services.audio_cache import AudioCacheTimeoutError
from pronunciation.services.media import remove_quietly
from pronunciation.services.prompts import PRACTICE_PROMPTS
from pronunciation.services.resilience import ExternalServiceError
from pronunciation.views import (
    ApiResponse,
    AudioLookupView,
    CachedPromptView,
    ErrorResponse,
    HistoryItemView,
    PopularWordsView,
    PopularWordView,
    PromptView,
    ScoringResultView,
    UserStatsView,
)

router = APIRouter(prefix="/api/pronunciation", tags=["pronunciation"])

logger = logging.getLogger(__name__)

PIPELINE_STAGES = tuple(ScoringPipeline.describe())

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}

_PROMPT_INDEX_FORM = Form(..., alias="promptIndex")
_PROMPT_TEXT_FORM = Form(None, alias="promptText")
_AUDIO_FILE_UPLOAD = File(None)


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Map domain and provider failures onto HTTP status codes."""

    try:
        yield
    except (InvalidPromptIndexError, InvalidWordError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except AudioCacheTimeoutError as exc:
        logger.warning("%s timed out: %s", action, exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc
    except ExternalServiceError as exc:
        logger.error("%s failed: %s", action, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.post("/score", response_model=ApiResponse[ScoringResultView], responses=_ERROR_RESPONSES)
async def score_recording(
    user_id: CurrentUserDep,
    service: ScoringServiceDep,
    prompt_index: int = _PROMPT_INDEX_FORM,
    prompt_text: Optional[str] = _PROMPT_TEXT_FORM,
    audio: Optional[UploadFile] = _AUDIO_FILE_UPLOAD,
) -> ApiResponse[ScoringResultView]:
    """Score an uploaded recording of a practice prompt."""

    with _translate_errors("Pronunciation scoring"):
        PracticeDomainService.ensure_prompt_index(prompt_index)
    if audio is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Audio file is required")

    content_type = resolve_content_type(audio)
    local_path = await save_upload(audio, content_type)
    logger.info(
        "Pronunciation scoring request user=%s prompt=%d type=%s", user_id, prompt_index, content_type
    )
    try:
        with _translate_errors("Pronunciation scoring"):
            result = await service.score_user_recording(
                user_id, prompt_index, prompt_text, local_path
            )
    finally:
        remove_quietly(local_path)

    return ApiResponse[ScoringResultView](data=ScoringResultView.model_validate(result))


@router.get("/prompts", response_model=ApiResponse[List[PromptView]])
async def list_prompts() -> ApiResponse[List[PromptView]]:
    """Return the practice sentences in difficulty order."""

    prompts = [
        PromptView(prompt_index=index, prompt_text=text)
        for index, text in enumerate(PRACTICE_PROMPTS)
    ]
    return ApiResponse[List[PromptView]](data=prompts)


@router.get(
    "/prompt-audio/{prompt_index}",
    response_model=ApiResponse[AudioLookupView],
    responses=_ERROR_RESPONSES,
)
async def get_prompt_audio(
    prompt_index: int,
    service: PromptAudioServiceDep,
    prompt_text: Optional[str] = Query(None, alias="promptText"),
) -> ApiResponse[AudioLookupView]:
    """Return cached prompt audio, generating it on first request."""

    with _translate_errors(f"Prompt audio {prompt_index}"):
        lookup = await service.get_or_generate(prompt_index, prompt_text)
    return ApiResponse[AudioLookupView](data=AudioLookupView.model_validate(lookup))


@router.post(
    "/prompt-audio/{prompt_index}/regenerate",
    response_model=ApiResponse[AudioLookupView],
    responses=_ERROR_RESPONSES,
)
async def regenerate_prompt_audio(
    prompt_index: int,
    user_id: CurrentUserDep,
    service: PromptAudioServiceDep,
    prompt_text: Optional[str] = Query(None, alias="promptText"),
) -> ApiResponse[AudioLookupView]:
    """Discard the cached prompt audio and synthesize it again."""

    logger.info("Prompt audio regeneration requested by user=%s prompt=%d", user_id, prompt_index)
    with _translate_errors(f"Prompt audio regeneration {prompt_index}"):
        lookup = await service.regenerate(prompt_index, prompt_text)
    return ApiResponse[AudioLookupView](data=AudioLookupView.model_validate(lookup))


@router.get("/cached-prompts", response_model=ApiResponse[List[CachedPromptView]])
async def get_cached_prompts(
    service: PromptAudioServiceDep,
) -> ApiResponse[List[CachedPromptView]]:
    records = await service.list_cached()
    return ApiResponse[List[CachedPromptView]](
        data=[CachedPromptView.model_validate(record) for record in records]
    )


@router.get(
    "/word-audio/{word}",
    response_model=ApiResponse[AudioLookupView],
    responses=_ERROR_RESPONSES,
)
async def get_word_audio(word: str, service: WordAudioServiceDep) -> ApiResponse[AudioLookupView]:
    """Return cached word audio, generating it on first request."""

    with _translate_errors(f"Word audio '{word}'"):
        lookup = await service.get_or_generate(word)
    return ApiResponse[AudioLookupView](data=AudioLookupView.model_validate(lookup))


@router.get("/popular-words", response_model=ApiResponse[PopularWordsView])
async def get_popular_words(
    service: WordAudioServiceDep,
    limit: int = Query(50, ge=1, le=500),
) -> ApiResponse[PopularWordsView]:
    records = await service.popular_words(limit)
    total = await service.count()
    words = [PopularWordView.model_validate(record) for record in records]
    return ApiResponse[PopularWordsView](data=PopularWordsView(words=words, total_cached=total))


@router.get("/history", response_model=ApiResponse[List[HistoryItemView]])
async def get_history(
    user_id: CurrentUserDep,
    service: ScoringServiceDep,
    limit: int = Query(10, ge=1, le=100),
) -> ApiResponse[List[HistoryItemView]]:
    """Return the caller's most recent practice sessions, newest first."""

    history = await service.get_history(user_id, limit)
    return ApiResponse[List[HistoryItemView]](
        data=[HistoryItemView.model_validate(item) for item in history]
    )


@router.get(
    "/latest-session/{prompt_index}",
    response_model=ApiResponse[ScoringResultView],
    responses={404: {"model": ErrorResponse}, 400: {"model": ErrorResponse}},
)
async def get_latest_session(
    prompt_index: int,
    user_id: CurrentUserDep,
    service: ScoringServiceDep,
) -> ApiResponse[ScoringResultView]:
    with _translate_errors("Latest session lookup"):
        result = await service.get_latest_session(user_id, prompt_index)
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No history found for this prompt",
        )
    return ApiResponse[ScoringResultView](data=ScoringResultView.model_validate(result))


@router.get(
    "/session/{session_id}",
    response_model=ApiResponse[ScoringResultView],
    responses={404: {"model": ErrorResponse}},
)
async def get_session_detail(
    session_id: UUID,
    user_id: CurrentUserDep,
    service: ScoringServiceDep,
) -> ApiResponse[ScoringResultView]:
    result = await service.get_session_detail(session_id, user_id=user_id)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Session not found")
    return ApiResponse[ScoringResultView](data=ScoringResultView.model_validate(result))


@router.get("/stats", response_model=ApiResponse[UserStatsView])
async def get_stats(user_id: CurrentUserDep, service: ScoringServiceDep) -> ApiResponse[UserStatsView]:
    stats = await service.get_user_stats(user_id)
    return ApiResponse[UserStatsView](data=UserStatsView.model_validate(stats))
