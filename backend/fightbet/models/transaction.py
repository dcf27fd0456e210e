from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from fightbet.database import Base, utcnow


class TransactionType(str, enum.Enum):
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    BET_PLACED = "BET_PLACED"
    BET_WIN = "BET_WIN"
    BET_REFUND = "BET_REFUND"
    COMMISSION = "COMMISSION"
    BONUS = "BONUS"
    PENALTY = "PENALTY"


class TransactionStatus(str, enum.Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


class PaymentProvider(str, enum.Enum):
    WAVE = "WAVE"
    ORANGE_MONEY = "ORANGE_MONEY"
    FREE_MONEY = "FREE_MONEY"


EXTERNAL_TYPES = (TransactionType.DEPOSIT, TransactionType.WITHDRAWAL)


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),)

    id = Column(Integer, primary_key=True)
    # NULL for house rows (commission), which belong to no bettor.
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    type = Column(Enum(TransactionType), nullable=False)
    amount = Column(BigInteger, nullable=False)
    status = Column(Enum(TransactionStatus), default=TransactionStatus.PENDING, nullable=False)
    provider = Column(Enum(PaymentProvider), nullable=True)
    external_ref = Column(String(100), nullable=True, index=True)
    phone_number = Column(String(20), nullable=True)
    bet_id = Column(Integer, ForeignKey("bets.id"), nullable=True, index=True)
    notes = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    processed_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", back_populates="transactions")
