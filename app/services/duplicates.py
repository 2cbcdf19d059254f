from __future__ import annotations

from loguru import logger

from app.schemas.issue import DuplicateCheckResult, SimilarityCandidate
from app.services.keywords import extract_keywords
from app.services.retriever import CandidateRetriever
from app.services.similarity import DUPLICATE_THRESHOLD, is_likely_duplicate, jaccard_similarity

MIN_TITLE_LENGTH = 5


class DuplicateDetector:
    def __init__(
        self,
        retriever: CandidateRetriever,
        *,
        threshold: float = DUPLICATE_THRESHOLD,
        min_title_length: int = MIN_TITLE_LENGTH,
    ) -> None:
        self.retriever = retriever
        self.threshold = threshold
        self.min_title_length = min_title_length

    def detect(self, title: str) -> DuplicateCheckResult:
        """Rank stored issues whose titles look like ``title``.

        Titles under ``min_title_length`` characters, or without any keyword,
        are not checked at all. Lookup or scoring failures count as "no
        duplicates": the check is advisory and must never block creation.
        """
        title = title or ""
        if len(title) < self.min_title_length:
            logger.debug("Skipping duplicate check for short title length={length}", length=len(title))
            return DuplicateCheckResult()

        keywords = extract_keywords(title)
        if not keywords:
            return DuplicateCheckResult()

        try:
            existing = self.retriever.retrieve(keywords)
            candidates = []
            for issue in existing:
                score = jaccard_similarity(title, issue.title)
                if is_likely_duplicate(score, self.threshold):
                    candidates.append(SimilarityCandidate(issue=issue, score=score))
        except Exception:  # noqa: BLE001
            logger.exception("Duplicate check failed for title={title}", title=title)
            return DuplicateCheckResult()

        candidates.sort(key=lambda c: (c.score, c.issue.created_at), reverse=True)
        logger.info(
            "Duplicate check title={title} retrieved={retrieved} flagged={flagged}",
            title=title,
            retrieved=len(existing),
            flagged=len(candidates),
        )
        return DuplicateCheckResult(has_duplicates=bool(candidates), candidates=candidates)
