"""Database tables / schema"""

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import JSON
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class DBGame(Base):
    __tablename__ = "games"
    id: Mapped[UUID] = mapped_column(primary_key=True)
    registered_players: Mapped[dict[str, Optional[str]]] = mapped_column(JSON)

    # game state
    fen: Mapped[str]
    turn: Mapped[str]
    status: Mapped[str] = mapped_column(index=True)
    winner: Mapped[Optional[str]]
    moves: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    check_attempts: Mapped[int] = mapped_column(default=0)
    current_card: Mapped[Optional[dict[str, str]]] = mapped_column(JSON, nullable=True)
    cards_deck: Mapped[list[dict[str, str]]] = mapped_column(JSON, default=list)

    # optimistic concurrency: every write bumps the version
    version: Mapped[int] = mapped_column(default=0)

    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)
