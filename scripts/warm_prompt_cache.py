import asyncio
import os
import sys

# Add project root to path so we can import pronunciation
sys.path.append(os.getcwd())

from pronunciation.database import dispose_engine, init_models, session_scope
from pronunciation.infrastructure.persistence.repositories_sqlalchemy import (
    SQLAlchemyPromptAudioRepository,
)
from pronunciation.services.audio_cache import AudioCacheTimeoutError
from pronunciation.services.prompt_audio import PromptAudioService
from pronunciation.services.prompts import PRACTICE_PROMPTS
from pronunciation.services.resilience import ExternalServiceError
from pronunciation.services.storage import S3AudioStorage
from pronunciation.services.tts import PollyTtsService


async def main():
    """Generate (or confirm) cached audio for every practice prompt."""

    await init_models()
    storage = S3AudioStorage()
    synthesizer = PollyTtsService()
    failures = 0

    try:
        for index in range(len(PRACTICE_PROMPTS)):
            async with session_scope() as session:
                service = PromptAudioService(
                    SQLAlchemyPromptAudioRepository(session), storage, synthesizer
                )
                try:
                    lookup = await service.get_or_generate(index)
                except (ExternalServiceError, AudioCacheTimeoutError) as e:
                    failures += 1
                    print(f"[{index:2d}] failed: {e}")
                    continue
            state = "cached" if lookup.cached else "generated"
            print(f"[{index:2d}] {state:9s} {lookup.duration:6.2f}s {lookup.audio_url}")
    finally:
        await dispose_engine()

    if failures:
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
