from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Float, BigInteger,
    ForeignKey, Enum as SQLEnum, UniqueConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from league_bot.constants import RatingConstants

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp. Every DateTime column in this schema stores UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class MatchStatus(Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    DISPUTED = "disputed"
    CANCELLED = "cancelled"
    NULLIFIED = "nullified"


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    external_id = Column(BigInteger, unique=True, nullable=False)
    display_name = Column(String(100), nullable=False)

    # Rating
    rating = Column(Integer, default=RatingConstants.DEFAULT_RATING, nullable=False)
    rating_deviation = Column(Integer, default=RatingConstants.DEFAULT_DEVIATION, nullable=False)
    rating_volatility = Column(Float, default=RatingConstants.DEFAULT_VOLATILITY, nullable=False)

    # League participation
    competing = Column(Boolean, default=False, nullable=False)
    weekly_challenges = Column(Integer, default=0, nullable=False)
    inactive_weeks = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utcnow, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, name='{self.display_name}', rating={self.rating}, competing={self.competing})>"


class Match(Base):
    __tablename__ = 'matches'

    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, ForeignKey('users.id'), nullable=False)  # Submitter
    opponent_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    result = Column(Boolean, nullable=False)  # True = player won
    confirmed = Column(Boolean, default=False, nullable=False)
    status = Column(SQLEnum(MatchStatus), default=MatchStatus.SUBMITTED, nullable=False)

    # Snapshots taken at submission; end ratings stay NULL until confirmation
    player_start_rating = Column(Integer, nullable=True)
    player_end_rating = Column(Integer, nullable=True)
    opponent_start_rating = Column(Integer, nullable=True)
    opponent_end_rating = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    resolved_at = Column(DateTime, nullable=True)

    player = relationship("User", foreign_keys=[player_id])
    opponent = relationship("User", foreign_keys=[opponent_id])

    __table_args__ = (
        Index('ix_matches_player_created', 'player_id', 'created_at'),
        Index('ix_matches_opponent_created', 'opponent_id', 'created_at'),
    )

    @property
    def winner_id(self) -> int:
        return self.player_id if self.result else self.opponent_id

    @property
    def loser_id(self) -> int:
        return self.opponent_id if self.result else self.player_id

    @property
    def player_delta(self) -> Optional[int]:
        if self.player_end_rating is None or self.player_start_rating is None:
            return None
        return self.player_end_rating - self.player_start_rating

    @property
    def opponent_delta(self) -> Optional[int]:
        if self.opponent_end_rating is None or self.opponent_start_rating is None:
            return None
        return self.opponent_end_rating - self.opponent_start_rating

    def involves(self, user_id: int) -> bool:
        return user_id in (self.player_id, self.opponent_id)

    def __repr__(self):
        return f"<Match(id={self.id}, player={self.player_id}, opponent={self.opponent_id}, status={self.status.value if self.status else None})>"


class PendingMatch(Base):
    __tablename__ = 'pending_matches'

    correlation_id = Column(BigInteger, primary_key=True, autoincrement=False)  # Originating interaction id
    match_id = Column(Integer, ForeignKey('matches.id'), nullable=False, unique=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)  # Expected confirmer
    submitter_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    match = relationship("Match")

    # One live pending match per ordered (submitter, opponent) pair
    __table_args__ = (UniqueConstraint('submitter_id', 'user_id', name='uq_pending_matches_pair'),)

    def __repr__(self):
        return f"<PendingMatch(correlation_id={self.correlation_id}, match={self.match_id}, confirmer={self.user_id})>"


class MaintenanceRun(Base):
    __tablename__ = 'maintenance_runs'

    id = Column(Integer, primary_key=True)
    boundary = Column(DateTime, nullable=False)
    step = Column(String(32), nullable=False)
    affected = Column(Integer, default=0, nullable=False)
    completed_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (UniqueConstraint('boundary', 'step', name='uq_maintenance_runs_boundary_step'),)

    def __repr__(self):
        return f"<MaintenanceRun(boundary={self.boundary}, step='{self.step}', affected={self.affected})>"
