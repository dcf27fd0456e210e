from sqlalchemy import Column, Integer, BigInteger, Numeric, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from fightbet.database import Base, utcnow
from fightbet.models.fight import Corner


class BetStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    WON = "WON"
    LOST = "LOST"
    CANCELLED = "CANCELLED"
    POSTPONED = "POSTPONED"


TERMINAL_BET_STATUSES = (BetStatus.WON, BetStatus.LOST, BetStatus.CANCELLED)
OPEN_BET_STATUSES = (BetStatus.PENDING, BetStatus.ACCEPTED, BetStatus.POSTPONED)


class Bet(Base):
    __tablename__ = "bets"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_bet_amount_positive"),)

    id = Column(Integer, primary_key=True)
    creator_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    fight_id = Column(Integer, ForeignKey("fights.id"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    chosen_fighter = Column(Enum(Corner), nullable=False)
    # Snapshot of the fight odds at placement; settlement never re-reads the fight.
    odds = Column(Numeric(6, 2), nullable=False)
    potential_win = Column(BigInteger, nullable=False)
    actual_win = Column(BigInteger, default=0, nullable=False)
    status = Column(Enum(BetStatus), default=BetStatus.PENDING, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    settled_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    creator = relationship("User", back_populates="bets")
    fight = relationship("Fight", back_populates="bets")
