from __future__ import annotations

MIN_KEYWORD_LENGTH = 3


def extract_keywords(text: str) -> list[str]:
    """Lowercase ``text`` and keep whitespace-separated tokens of three or more characters.

    Order and repeats are preserved; callers that need a set deduplicate themselves.
    """
    if not text:
        return []
    return [token for token in text.lower().split() if len(token) >= MIN_KEYWORD_LENGTH]
