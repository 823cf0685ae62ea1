"""SQLAlchemy ORM models for cards, direct debits and card transactions"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Card(Base):
    """Funding account; its balance is derived from card_transaction rows"""

    __tablename__ = "card"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=True)
    bank = Column(Text, nullable=True)
    last_four = Column(String(4), nullable=True)
    type = Column(Text, nullable=False, default="debit")
    credit_limit = Column(Text, nullable=True)  # Currency string, e.g. "£500.00"
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    transactions = relationship("CardTransaction", back_populates="card", cascade="all, delete-orphan")


class DirectDebit(Base):
    """Recurring obligation charged to a card"""

    __tablename__ = "direct_debit"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    card_id = Column(String(36), nullable=True)  # Not a foreign key: a dangling card is a reportable failure
    name = Column(Text, nullable=False)
    amount = Column(Text, nullable=False)  # Currency string, e.g. "£12.99"
    frequency = Column(Text, nullable=True, default="Monthly")
    category = Column(Text, nullable=True, default="Other")
    status = Column(Text, nullable=False, default="Active", index=True)
    next_date = Column(Date, nullable=True)
    last_payment_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class CardTransaction(Base):
    """Append-only ledger entry, amount is sign-prefixed ("-£12.99")"""

    __tablename__ = "card_transaction"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(Text, nullable=False, index=True)
    card_id = Column(String(36), ForeignKey("card.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(Text, nullable=False, default="Other")
    date = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    type = Column(Text, nullable=False, default="manual")
    direct_debit_id = Column(String(36), nullable=True, index=True)
    frequency = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default="completed")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    card = relationship("Card", back_populates="transactions")
