from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pronunciation.application.interfaces import (
    PracticeSessionRepositoryInterface,
    PromptAudioRepositoryInterface,
    WordAudioRepositoryInterface,
)
from pronunciation.domain.models import (
    AudioCacheStatus,
    NewPracticeSession,
    PracticeSessionRecord,
    PromptAudioRecord,
    StoredAudio,
    WordAudioRecord,
)
from pronunciation.domain.services import ClaimLostError
from pronunciation.models import PracticeSession, PromptAudio, WordAudio
from pronunciation.models.base import utcnow


class SQLAlchemyPromptAudioRepository(PromptAudioRepositoryInterface):
    """SQLAlchemy implementation of the prompt audio cache"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _load(self, prompt_index: int) -> Optional[PromptAudio]:
        result = await self.session.execute(
            select(PromptAudio).where(PromptAudio.prompt_index == prompt_index)
        )
        return result.scalar_one_or_none()

    async def get(self, prompt_index: int) -> Optional[PromptAudioRecord]:
        # Pollers re-read the row, so bypass the identity map.
        self.session.expire_all()
        db_prompt = await self._load(prompt_index)
        return PromptAudioRecord.model_validate(db_prompt) if db_prompt else None

    async def claim(
        self, prompt_index: int, prompt_text: str, voice: str
    ) -> Optional[UUID]:
        claim_id = uuid4()
        self.session.add(
            PromptAudio(
                prompt_index=prompt_index,
                prompt_text=prompt_text,
                voice=voice,
                status=AudioCacheStatus.PENDING,
                claim_id=claim_id,
                claimed_at=utcnow(),
            )
        )
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return None
        return claim_id

    async def mark_ready(
        self, prompt_index: int, claim_id: UUID, audio: StoredAudio
    ) -> PromptAudioRecord:
        # Conditional UPDATE so a taken-over claim can never overwrite the new holder's row.
        result = await self.session.execute(
            update(PromptAudio)
            .where(
                PromptAudio.prompt_index == prompt_index,
                PromptAudio.claim_id == claim_id,
                PromptAudio.status == AudioCacheStatus.PENDING,
            )
            .values(
                status=AudioCacheStatus.READY,
                audio_url=audio.secure_url,
                audio_public_id=audio.public_id,
                duration=audio.duration,
                format=audio.format,
                generated_at=utcnow(),
            )
        )
        await self.session.commit()
        if result.rowcount != 1:
            raise ClaimLostError(f"Claim {claim_id} no longer holds prompt {prompt_index}")
        self.session.expire_all()
        return PromptAudioRecord.model_validate(await self._load(prompt_index))

    async def release(self, prompt_index: int, claim_id: UUID) -> None:
        await self.session.execute(
            delete(PromptAudio).where(
                PromptAudio.prompt_index == prompt_index,
                PromptAudio.claim_id == claim_id,
                PromptAudio.status == AudioCacheStatus.PENDING,
            )
        )
        await self.session.commit()

    async def delete(self, prompt_index: int) -> Optional[PromptAudioRecord]:
        db_prompt = await self._load(prompt_index)
        if db_prompt is None:
            return None
        record = PromptAudioRecord.model_validate(db_prompt)
        await self.session.delete(db_prompt)
        await self.session.commit()
        return record

    async def list_ready(self) -> List[PromptAudioRecord]:
        result = await self.session.execute(
            select(PromptAudio)
            .where(PromptAudio.status == AudioCacheStatus.READY)
            .order_by(PromptAudio.prompt_index)
        )
        return [PromptAudioRecord.model_validate(row) for row in result.scalars().all()]


class SQLAlchemyWordAudioRepository(WordAudioRepositoryInterface):
    """SQLAlchemy implementation of the word audio cache"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _load(self, word: str) -> Optional[WordAudio]:
        result = await self.session.execute(select(WordAudio).where(WordAudio.word == word))
        return result.scalar_one_or_none()

    async def get(self, word: str) -> Optional[WordAudioRecord]:
        self.session.expire_all()
        db_word = await self._load(word)
        return WordAudioRecord.model_validate(db_word) if db_word else None

    async def claim(self, word: str, voice: str) -> Optional[UUID]:
        claim_id = uuid4()
        self.session.add(
            WordAudio(
                word=word,
                voice=voice,
                status=AudioCacheStatus.PENDING,
                times_used=1,
                claim_id=claim_id,
                claimed_at=utcnow(),
            )
        )
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            return None
        return claim_id

    async def mark_ready(self, word: str, claim_id: UUID, audio: StoredAudio) -> WordAudioRecord:
        result = await self.session.execute(
            update(WordAudio)
            .where(
                WordAudio.word == word,
                WordAudio.claim_id == claim_id,
                WordAudio.status == AudioCacheStatus.PENDING,
            )
            .values(
                status=AudioCacheStatus.READY,
                audio_url=audio.secure_url,
                audio_public_id=audio.public_id,
                duration=audio.duration,
                format=audio.format,
                generated_at=utcnow(),
            )
        )
        await self.session.commit()
        if result.rowcount != 1:
            raise ClaimLostError(f"Claim {claim_id} no longer holds word '{word}'")
        self.session.expire_all()
        return WordAudioRecord.model_validate(await self._load(word))

    async def release(self, word: str, claim_id: UUID) -> None:
        await self.session.execute(
            delete(WordAudio).where(
                WordAudio.word == word,
                WordAudio.claim_id == claim_id,
                WordAudio.status == AudioCacheStatus.PENDING,
            )
        )
        await self.session.commit()

    async def increment_usage(self, word: str) -> int:
        # Single UPDATE so concurrent hits never lose an increment.
        await self.session.execute(
            update(WordAudio)
            .where(WordAudio.word == word)
            .values(times_used=WordAudio.times_used + 1)
        )
        await self.session.commit()
        result = await self.session.execute(
            select(WordAudio.times_used).where(WordAudio.word == word)
        )
        return result.scalar_one()

    async def most_used(self, limit: int = 50) -> List[WordAudioRecord]:
        result = await self.session.execute(
            select(WordAudio)
            .where(WordAudio.status == AudioCacheStatus.READY)
            .order_by(WordAudio.times_used.desc(), WordAudio.word)
            .limit(limit)
        )
        return [WordAudioRecord.model_validate(row) for row in result.scalars().all()]

    async def count_ready(self) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(WordAudio)
            .where(WordAudio.status == AudioCacheStatus.READY)
        )
        return result.scalar_one()


class SQLAlchemyPracticeSessionRepository(PracticeSessionRepositoryInterface):
    """SQLAlchemy implementation of the practice session history"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, session: NewPracticeSession) -> PracticeSessionRecord:
        payload = session.model_dump()
        db_session = PracticeSession(**payload, completed_at=utcnow())
        self.session.add(db_session)
        await self.session.commit()
        await self.session.refresh(db_session)
        return PracticeSessionRecord.model_validate(db_session)

    async def get(self, session_id: UUID) -> Optional[PracticeSessionRecord]:
        result = await self.session.execute(
            select(PracticeSession).where(PracticeSession.id == session_id)
        )
        db_session = result.scalar_one_or_none()
        return PracticeSessionRecord.model_validate(db_session) if db_session else None

    async def latest_for_prompt(
        self, user_id: str, prompt_index: int
    ) -> Optional[PracticeSessionRecord]:
        result = await self.session.execute(
            select(PracticeSession)
            .where(
                PracticeSession.user_id == user_id,
                PracticeSession.prompt_index == prompt_index,
            )
            .order_by(PracticeSession.completed_at.desc())
            .limit(1)
        )
        db_session = result.scalar_one_or_none()
        return PracticeSessionRecord.model_validate(db_session) if db_session else None

    async def recent(self, user_id: str, limit: int = 10) -> List[PracticeSessionRecord]:
        result = await self.session.execute(
            select(PracticeSession)
            .where(PracticeSession.user_id == user_id)
            .order_by(PracticeSession.completed_at.desc())
            .limit(limit)
        )
        return [PracticeSessionRecord.model_validate(row) for row in result.scalars().all()]

    async def list_for_user(self, user_id: str) -> List[PracticeSessionRecord]:
        result = await self.session.execute(
            select(PracticeSession)
            .where(PracticeSession.user_id == user_id)
            .order_by(PracticeSession.completed_at.desc())
        )
        return [PracticeSessionRecord.model_validate(row) for row in result.scalars().all()]
