from sqlalchemy import Column, String, Boolean, Integer, ForeignKey
from sqlalchemy.types import JSON
from db.session import Base
from db.types import UTCDateTime, utcnow, new_id


class CuratedShare(Base):
    __tablename__ = "curated_shares"

    id = Column(String(36), primary_key=True, default=new_id)
    token = Column(String(64), unique=True, index=True, nullable=False)
    label = Column(String(200), nullable=False)
    product_ids = Column(JSON, default=list, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    last_used_at = Column(UTCDateTime, nullable=True)
    use_count = Column(Integer, default=0, nullable=False)
    created_by_id = Column(String(36), ForeignKey("users.id"), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "token": self.token,
            "label": self.label,
            "productIds": list(self.product_ids or []),
            "active": self.active,
            "expiresAt": self.expires_at,
            "createdAt": self.created_at,
            "lastUsedAt": self.last_used_at,
            "useCount": self.use_count,
            "createdById": self.created_by_id,
        }
