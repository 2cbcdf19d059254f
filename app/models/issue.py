from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base


class Issue(Base):
    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    title: Mapped[str] = mapped_column(String(512), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="Medium")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="Open", index=True)
    assigned_to: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_by: Mapped[str] = mapped_column(String(256), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    keywords: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    keyword_index: Mapped[list[IssueKeyword]] = relationship(back_populates="issue", cascade="all, delete-orphan")


class IssueKeyword(Base):
    issue_id: Mapped[str] = mapped_column(ForeignKey("issue.id", ondelete="CASCADE"), primary_key=True)
    keyword: Mapped[str] = mapped_column(String(128), primary_key=True, index=True)

    issue: Mapped[Issue] = relationship(back_populates="keyword_index")
