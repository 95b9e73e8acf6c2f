from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Boolean, Numeric, ForeignKey
from sqlalchemy.orm import relationship
from stashit.database.postgres import Base
from stashit.models._ids import generate_id


class Product(Base):
    __tablename__ = "products"

    id = Column(String(32), primary_key=True, default=generate_id)
    seller_id = Column(String(32), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    condition = Column(String(20), nullable=False)  # NEW, LIKE_NEW, GOOD, FAIR, POOR
    category = Column(String(20), nullable=False, index=True)  # BOOKS, ELECTRONICS, ...
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    seller = relationship("User")

    def __repr__(self):
        return f"<Product(id={self.id}, title={self.title})>"
