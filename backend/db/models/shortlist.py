from sqlalchemy import Column, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from db.session import Base
from db.types import UTCDateTime, utcnow, new_id


class ShortlistItem(Base):
    __tablename__ = "shortlist_items"

    id = Column(String(36), primary_key=True, default=new_id)
    buyer_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    product_id = Column(String(36), ForeignKey("products.id"), index=True, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    product = relationship("Product", lazy="raise")
    __table_args__ = (
        UniqueConstraint("buyer_id", "product_id", name="uq_shortlist_buyer_product"),
    )
