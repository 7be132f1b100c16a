from sqlalchemy import Column, Integer, String, Boolean
from fieldops.database import Base, TimestampMixin

class Business(Base, TimestampMixin):
    __tablename__ = "business"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    timezone = Column(String, nullable=True, default="UTC")
    is_active = Column(Boolean, nullable=False, default=True)
