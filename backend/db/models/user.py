from sqlalchemy import Column, String, Boolean, Text
from db.session import Base
from db.types import UTCDateTime, utcnow, new_id


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=True)
    first_name = Column(String(100))
    last_name = Column(String(100))
    company_name = Column(String(200))
    phone = Column(String(30))
    contact_type = Column(String(50))
    address = Column(String(300))
    city = Column(String(100))
    postal_code = Column(String(20))
    mailing_country = Column(String(100))
    approved = Column(Boolean, default=False, nullable=False)
    is_admin = Column(Boolean, default=False, nullable=False)
    eula_accepted_at = Column(UTCDateTime, nullable=True)
    doc_uploaded = Column(Boolean, default=False, nullable=False)
    must_change_password = Column(Boolean, default=False, nullable=False)
    # SHA-256 hex of the one live refresh token; never the raw token
    refresh_token_hash = Column(Text, nullable=True)
    refresh_token_expires_at = Column(UTCDateTime, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, nullable=False)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_seller(self) -> bool:
        return "Seller" in (self.contact_type or "")
