from __future__ import annotations

# Titles scoring strictly above this are reported as likely duplicates.
DUPLICATE_THRESHOLD = 0.4


def word_set(text: str) -> set[str]:
    return set(text.lower().split()) if text else set()


def jaccard_similarity(a: str, b: str) -> float:
    """Jaccard index of the lowercased word sets of ``a`` and ``b``.

    Two inputs without any words score 0.0.
    """
    words_a = word_set(a)
    words_b = word_set(b)
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def is_likely_duplicate(score: float, threshold: float = DUPLICATE_THRESHOLD) -> bool:
    return score > threshold
