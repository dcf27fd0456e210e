from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from fightbet.database import Base, utcnow


class FightStatus(str, enum.Enum):
    SCHEDULED = "SCHEDULED"
    ONGOING = "ONGOING"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"
    POSTPONED = "POSTPONED"


class Corner(str, enum.Enum):
    A = "A"
    B = "B"


class Fighter(Base):
    __tablename__ = "fighters"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    nickname = Column(String(100), nullable=True)
    stable = Column(String(100), nullable=True)
    wins = Column(Integer, default=0, nullable=False)
    losses = Column(Integer, default=0, nullable=False)
    draws = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class Fight(Base):
    __tablename__ = "fights"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    fighter_a_id = Column(Integer, ForeignKey("fighters.id"), nullable=False)
    fighter_b_id = Column(Integer, ForeignKey("fighters.id"), nullable=False)
    odds_a = Column(Numeric(6, 2), nullable=False)
    odds_b = Column(Numeric(6, 2), nullable=False)
    status = Column(Enum(FightStatus), default=FightStatus.SCHEDULED, nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=True)
    ended_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    fighter_a = relationship("Fighter", foreign_keys=[fighter_a_id], lazy="joined")
    fighter_b = relationship("Fighter", foreign_keys=[fighter_b_id], lazy="joined")
    bets = relationship("Bet", back_populates="fight")


class FightResult(Base):
    __tablename__ = "fight_results"

    id = Column(Integer, primary_key=True)
    fight_id = Column(Integer, ForeignKey("fights.id"), unique=True, nullable=False)
    winner = Column(Enum(Corner), nullable=False)
    victory_method = Column(String(50), nullable=True)
    notes = Column(String(500), nullable=True)
    admin_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    validated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
