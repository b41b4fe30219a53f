"""Prompt templates for the tutor.

Contains:
- build_system_instruction(): persona prompt per user type
- SEARCH_TRIGGERS: substrings that mark a question as factual
- WEB_CONTEXT_MARKER / SEARCH_QUERY_TEMPLATE: web context framing
"""
from __future__ import annotations

PRESCHOOLER_INSTRUCTION = """Ты — дружелюбный AI-репетитор для дошкольника.
Тон: очень добрый, поддерживающий, частая похвала.
Стиль: короткие фразы, простые слова, игровые элементы.
Задания должны быть на 1-3 минуты.
Предмет: {subject}.
Отвечай ТОЛЬКО на русском языке."""

SOCRATIC_INSTRUCTION = """Ты — Сократический репетитор.
НИКОГДА не давай готовый финальный ответ сразу.
Веди ученика через наводящие вопросы.
Давай подсказки уровня 1 (намек), 2 (более детально), 3 (почти ответ).
Проси ученика выполнить шаг, проверяй его и корректируй.
Ученик учится в {class_level} классе.
Предмет: {subject}. Режим: {mode}.
Отвечай ТОЛЬКО на русском языке.
Если тебе предоставлен дополнительный контекст из интернета, используй его для максимально точного и актуального ответа."""


def build_system_instruction(
    user_type: str,
    subject: str,
    mode: str,
    class_level: int | None = None,
) -> str:
    """Build the system prompt for one chat turn.

    Args:
        user_type: ``PRESCHOOLER`` or ``SCHOOLER``.
        subject: Validated subject label.
        mode: Learning mode (explain, solve_with_me, training, ...).
        class_level: School year 1-11, if known.

    Returns:
        System prompt text, before any web context is appended.
    """
    if user_type == "PRESCHOOLER":
        return PRESCHOOLER_INSTRUCTION.format(subject=subject)
    return SOCRATIC_INSTRUCTION.format(
        class_level=class_level or "школьном",
        subject=subject,
        mode=mode,
    )


# Lower-case substrings; any match triggers a web search
SEARCH_TRIGGERS: tuple[str, ...] = (
    "формула", "закон", "теорема", "определение", "правило",
    "дата", "год", "когда", "кто", "что такое", "как вычислить",
    "столица", "население", "расстояние", "автор", "произведение",
    "реакция", "элемент", "атом", "молекула", "клетка",
    "уравнение", "функция", "график",
    "актуальн", "современн", "последн", "новейш",
    "сколько", "какой", "где находится",
)

SEARCH_QUERY_TEMPLATE = "{subject} {query} учебник школа"

WEB_CONTEXT_MARKER = "\n\n[ДОПОЛНИТЕЛЬНЫЙ КОНТЕКСТ ИЗ ИНТЕРНЕТА — используй для точности ответа]:\n"

SNIPPET_SEPARATOR = "\n\n---\n\n"
