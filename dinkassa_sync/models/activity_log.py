# dinkassa_sync/models/activity_log.py
from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.dialects.postgresql import JSONB
from dinkassa_sync.database import Base

class ActivityLog(Base):
    """
    Records dispatched catalog events for auditing.

    Each row holds the event kind, the local entity it concerned, the HTTP
    status Dinkassa.se answered with and the response (or caller-supplied
    context) in `details`.
    """
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True)
    action = Column(String(50), nullable=False, index=True)  # 'product-created', 'category-deleted', ...
    entity_type = Column(String(50), nullable=False, index=True)  # 'product' or 'category'
    entity_id = Column(String(100), nullable=False, index=True)
    platform = Column(String(50), nullable=True, index=True)
    status_code = Column(Integer, nullable=True, index=True)

    details = Column(JSONB, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)

    def __repr__(self):
        return f"<ActivityLog {self.action} {self.entity_type} {self.entity_id} ({self.status_code})>"
