from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from oddsledger.domain.enums import GameStatus, PickStatus


class Base(DeclarativeBase):
    pass


class Game(Base):
    __tablename__ = "games"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sport: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    event_key: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    commence_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    home_team: Mapped[str] = mapped_column(Text, nullable=False)
    away_team: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=GameStatus.SCHEDULED.value)
    home_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    away_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    odds_snapshots: Mapped[list[OddsSnapshot]] = relationship(back_populates="game")
    picks: Mapped[list[Pick]] = relationship(back_populates="game")

    @property
    def is_final(self) -> bool:
        return self.status == GameStatus.FINAL.value and self.home_score is not None and self.away_score is not None


class OddsSnapshot(Base):
    __tablename__ = "line_snapshots"
    __table_args__ = (
        UniqueConstraint("game_id", "provider", "captured_at", name="uq_line_snapshots_capture"),
        # At most one opening row per (game, provider), enforced by the store.
        Index(
            "uq_line_snapshots_opening",
            "game_id",
            "provider",
            unique=True,
            sqlite_where=text("is_opening = 1"),
            postgresql_where=text("is_opening"),
        ),
        Index("ix_line_snapshots_lookup", "game_id", "provider", "captured_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False, index=True)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    captured_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    sport: Mapped[str] = mapped_column(String(16), nullable=False)
    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    external_id: Mapped[str] = mapped_column(Text, nullable=False)
    home_team: Mapped[str] = mapped_column(Text, nullable=False)
    away_team: Mapped[str] = mapped_column(Text, nullable=False)
    spread_home: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    spread_home_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    spread_away: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    spread_away_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_line: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    total_over_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_under_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    home_ml: Mapped[int | None] = mapped_column(Integer, nullable=True)
    away_ml: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_opening: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_closing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    game: Mapped[Game] = relationship(back_populates="odds_snapshots")


class Capper(Base):
    __tablename__ = "cappers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pushes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    units: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    units_wagered: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    picks: Mapped[list[Pick]] = relationship(back_populates="capper")


class Pick(Base):
    __tablename__ = "picks"
    __table_args__ = (Index("ix_picks_status_game", "status", "game_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    capper_id: Mapped[int] = mapped_column(ForeignKey("cappers.id"), nullable=False, index=True)
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    sport: Mapped[str] = mapped_column(String(16), nullable=False)
    bet_type: Mapped[str] = mapped_column(String(16), nullable=False)
    selection: Mapped[str] = mapped_column(String(16), nullable=False)
    line_at_pick: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    price_at_pick: Mapped[int | None] = mapped_column(Integer, nullable=True)
    stake: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=PickStatus.PENDING.value)
    settled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    profit_loss: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    home_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    away_score: Mapped[int | None] = mapped_column(Integer, nullable=True)
    grade_note: Mapped[str | None] = mapped_column(Text, nullable=True)
    clv: Mapped[Decimal | None] = mapped_column(Numeric(8, 2), nullable=True)
    closing_line: Mapped[Decimal | None] = mapped_column(Numeric(6, 2), nullable=True)
    closing_price: Mapped[int | None] = mapped_column(Integer, nullable=True)
    closing_provider: Mapped[str | None] = mapped_column(String(32), nullable=True)
    clv_computed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    capper: Mapped[Capper] = relationship(back_populates="picks")
    game: Mapped[Game] = relationship(back_populates="picks")


class PipelineRun(Base):
    __tablename__ = "pipeline_runs"
    __table_args__ = (Index("ix_pipeline_runs_run_type_created", "run_type", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    run_type: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    stats_json: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
