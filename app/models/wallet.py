"""Database models for coin wallets and their transaction log."""
from sqlalchemy import Column, String, Integer, DateTime, Enum, CheckConstraint, Index
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()

# Largest value the Integer coin columns hold on every backend (32-bit signed)
MAX_COINS = 2**31 - 1


class Wallet(Base):
    """Coin balance per user. Mutated only through the wallet service."""
    __tablename__ = "wallets"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, unique=True, index=True)
    balance = Column(Integer, nullable=False, default=0)
    total_earned = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
        CheckConstraint("total_earned >= balance", name="ck_wallets_total_earned_covers_balance"),
    )


class Transaction(Base):
    """Append-only record of one earn or spend."""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    type = Column(Enum("earn", "spend", name="transaction_type"), nullable=False)
    action = Column(String(100), nullable=False)
    description = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        Index("ix_transactions_user_created", "user_id", "created_at"),
    )
