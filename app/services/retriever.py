from __future__ import annotations

from typing import Sequence

from loguru import logger

from app.schemas.issue import IssueRead
from app.services.store import IssueStore, StoreError


class CandidateRetriever:
    """Coarse pre-filter: any stored issue sharing at least one keyword.

    It over-returns on purpose; scoring narrows the list down. Store failures
    yield an empty list so a broken index never blocks issue creation.
    """

    def __init__(self, store: IssueStore) -> None:
        self.store = store

    def retrieve(self, keywords: Sequence[str]) -> list[IssueRead]:
        if not keywords:
            return []
        try:
            return self.store.find_by_any_keyword(keywords)
        except StoreError as exc:
            logger.warning(
                "Duplicate candidate lookup failed code={code}: {error}", code=exc.code, error=exc
            )
            return []
