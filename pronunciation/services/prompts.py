"""Fixed catalog of practice sentences, ordered by increasing difficulty."""

from __future__ import annotations

from pronunciation.domain.services import PracticeDomainService

PRACTICE_PROMPTS: tuple[str, ...] = (
    "I like to travel around the world",
    "She studies English every morning before going to school",
    "The weather is beautiful today, so we decided to go for a walk",
    "We enjoy eating delicious food together with our family and friends on weekends at home",
    "He works hard every day to achieve his goals and dreams, always staying focused and determined",
    "Learning new languages opens many opportunities for personal growth and career advancement "
    "in today's global connected world",
    "My family loves spending time at the beach during summer vacation. We build sandcastles, "
    "swim in the ocean, and play volleyball",
    "Technology has changed our lives dramatically in recent years. We can now communicate "
    "instantly with people worldwide and access unlimited information online",
    "Reading books helps improve vocabulary and knowledge significantly. When you read regularly, "
    "you expose yourself to new words and interesting ideas",
    "Exercise and healthy eating are important for wellness. Regular physical activity strengthens "
    "your heart, builds muscle, and boosts energy levels throughout the day",
    "Music brings people together from different cultures and backgrounds. It transcends language "
    "barriers and creates emotional connections that last forever",
    "Environmental protection is everyone's responsibility now. Climate change threatens our "
    "planet's future. We must act by reducing waste, conserving energy, and supporting "
    "sustainable practices",
    "Communication skills are essential in the modern workplace. Effective communicators express "
    "ideas clearly, listen actively, and resolve conflicts diplomatically with patience and "
    "understanding",
    "Traveling abroad broadens your perspective remarkably. When you visit foreign countries, you "
    "experience different cultures, taste exotic cuisines, and meet diverse interesting people "
    "everywhere",
    "Online education provides flexible learning opportunities worldwide. Students can access "
    "courses from prestigious universities, learn at their own pace, and balance education with work",
    "Developing good habits takes time, patience, and consistent effort. Whether exercising "
    "regularly, eating healthier, or reading more, start small and stay committed always",
)


def prompt_text_for(prompt_index: int) -> str:
    """Return the catalog sentence for a validated prompt index."""

    PracticeDomainService.ensure_prompt_index(prompt_index)
    return PRACTICE_PROMPTS[prompt_index]


__all__ = ["PRACTICE_PROMPTS", "prompt_text_for"]
