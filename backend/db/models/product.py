from sqlalchemy import Column, String, Boolean, Float, Text, Integer, ForeignKey, Index
from sqlalchemy.types import JSON
from db.session import Base
from db.types import UTCDateTime, utcnow, new_id


class Product(Base):
    __tablename__ = "products"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(300), nullable=False)
    description = Column(Text)
    category = Column(String(100), index=True)
    type = Column(String(100))
    certification = Column(String(200))
    licensed_producer = Column(String(200))
    seller_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    price_per_unit = Column(Float)
    grams_available = Column(Float)
    upcoming_qty = Column(Float)
    thc_min = Column(Float)
    thc_max = Column(Float)
    cbd_min = Column(Float)
    cbd_max = Column(Float)
    dominant_terpene = Column(String(200))
    image_urls = Column(JSON, default=list)
    lab_name = Column(String(200))
    test_date = Column(UTCDateTime)
    is_active = Column(Boolean, default=False, nullable=False)
    match_count = Column(Integer, default=0, nullable=False)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)
    __table_args__ = (
        Index("ix_products_is_active", "is_active"),
    )

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "type": self.type,
            "certification": self.certification,
            "thcMin": self.thc_min,
            "thcMax": self.thc_max,
            "cbdMin": self.cbd_min,
            "cbdMax": self.cbd_max,
            "pricePerUnit": self.price_per_unit,
            "gramsAvailable": self.grams_available,
            "upcomingQty": self.upcoming_qty,
            "licensedProducer": self.licensed_producer,
            "imageUrls": self.image_urls or [],
            "isActive": self.is_active,
            "labName": self.lab_name,
            "testDate": self.test_date,
        }
