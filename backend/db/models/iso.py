import enum

from sqlalchemy import Column, String, Float, Text, ForeignKey, Enum, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from db.session import Base
from db.types import UTCDateTime, utcnow, new_id


class IsoStatus(str, enum.Enum):
    OPEN = "OPEN"
    MATCHED = "MATCHED"
    FULFILLED = "FULFILLED"
    CLOSED = "CLOSED"
    EXPIRED = "EXPIRED"


class IsoRequest(Base):
    __tablename__ = "iso_requests"

    id = Column(String(36), primary_key=True, default=new_id)
    buyer_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    category = Column(String(100), index=True)
    type = Column(String(100))
    certification = Column(String(200))
    thc_min = Column(Float)
    thc_max = Column(Float)
    cbd_min = Column(Float)
    cbd_max = Column(Float)
    quantity_min = Column(Float)
    quantity_max = Column(Float)
    budget_max = Column(Float)
    notes = Column(Text)
    status = Column(Enum(IsoStatus, name="iso_status"), default=IsoStatus.OPEN, nullable=False, index=True)
    expires_at = Column(UTCDateTime, nullable=False, index=True)
    matched_product_id = Column(String(36), ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    buyer = relationship("User", lazy="raise")
    matched_product = relationship("Product", lazy="raise")
    responses = relationship("IsoResponse", back_populates="iso_request", lazy="raise")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "buyerId": self.buyer_id,
            "category": self.category,
            "type": self.type,
            "certification": self.certification,
            "thcMin": self.thc_min,
            "thcMax": self.thc_max,
            "cbdMin": self.cbd_min,
            "cbdMax": self.cbd_max,
            "quantityMin": self.quantity_min,
            "quantityMax": self.quantity_max,
            "budgetMax": self.budget_max,
            "notes": self.notes,
            "status": self.status.value if self.status else None,
            "expiresAt": self.expires_at,
            "matchedProductId": self.matched_product_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


class IsoResponse(Base):
    __tablename__ = "iso_responses"

    id = Column(String(36), primary_key=True, default=new_id)
    iso_request_id = Column(String(36), ForeignKey("iso_requests.id"), nullable=False)
    seller_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="SET NULL"), nullable=True)
    message = Column(Text)
    status = Column(String(50), default="pending", nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)

    iso_request = relationship("IsoRequest", back_populates="responses", lazy="raise")
    seller = relationship("User", lazy="raise")
    product = relationship("Product", lazy="raise")
    __table_args__ = (
        UniqueConstraint("iso_request_id", "seller_id", name="uq_iso_response_seller"),
        Index("ix_iso_responses_seller", "seller_id"),
        Index("ix_iso_responses_request", "iso_request_id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "isoRequestId": self.iso_request_id,
            "sellerId": self.seller_id,
            "productId": self.product_id,
            "message": self.message,
            "status": self.status,
            "createdAt": self.created_at,
        }
