from sqlalchemy import Column, Integer, BigInteger, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from fightbet.database import Base, utcnow


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallet_balance_non_negative"),
        CheckConstraint("bonus_balance >= 0", name="ck_wallet_bonus_non_negative"),
        CheckConstraint("locked_balance >= 0", name="ck_wallet_locked_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    # All amounts are integer minor units (FCFA).
    balance = Column(BigInteger, default=0, nullable=False)
    bonus_balance = Column(BigInteger, default=0, nullable=False)
    locked_balance = Column(BigInteger, default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), onupdate=utcnow)

    user = relationship("User", back_populates="wallet")
