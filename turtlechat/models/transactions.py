from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from turtlechat.database.mysql import Base


class Transaction(Base):
    """거북이 판매 거래글"""
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=True)
    price = Column(Numeric(14, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    photos = relationship(
        "TransactionPhoto",
        back_populates="transaction",
        order_by="TransactionPhoto.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Transaction(id={self.id}, seller_id={self.seller_id}, title={self.title})>"


class TransactionPhoto(Base):
    __tablename__ = "transaction_photos"

    id = Column(Integer, primary_key=True, index=True)
    transaction_id = Column(Integer, ForeignKey("transactions.id"), nullable=False, index=True)
    image_address = Column(String(500), nullable=False)

    transaction = relationship("Transaction", back_populates="photos")
