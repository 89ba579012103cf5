from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lexibatch.models.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Language(Base):
    """Target (or source) language known to the localization table."""

    __tablename__ = "languages"

    code: Mapped[str] = mapped_column(String(5), primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    percent_translated: Mapped[float] = mapped_column(
        Float, default=0.0, nullable=False, doc="Translated keys over source keys, as a percentage."
    )

    translations: Mapped[list[Translation]] = relationship(
        back_populates="language", cascade="all, delete-orphan", passive_deletes=True
    )


class Translation(Base):
    """Text for one translation key in one language; unique per (key, language)."""

    __tablename__ = "translations"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    translation_key: Mapped[str] = mapped_column(Text, nullable=False)
    language_code: Mapped[str] = mapped_column(
        String(5), ForeignKey("languages.code", ondelete="cascade"), nullable=False
    )
    translated_text: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )

    language: Mapped[Language] = relationship(back_populates="translations")

    __table_args__ = (
        UniqueConstraint(
            "translation_key", "language_code", name="uq_translations_key_language"
        ),
        Index("ix_translations_key", "translation_key"),
    )


class Prompt(Base):
    """Named system prompt handed to the translation engine."""

    __tablename__ = "prompts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
