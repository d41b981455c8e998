# tarotapp/models/database_models/user_document.py
from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, String

from tarotapp.data.database import Base


class UserDocument(Base):
    __tablename__ = "user_documents"

    collection = Column(String, primary_key=True)
    key = Column(String, primary_key=True, index=True)
    fields = Column(JSON, nullable=False, default=dict)
    updated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
