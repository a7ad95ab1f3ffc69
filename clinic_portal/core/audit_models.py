from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base

class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    # The acting identity; NULL for anonymous or system actions
    identity_id = Column(String(32), ForeignKey("identities.id", ondelete="SET NULL"), nullable=True, index=True)
    action = Column(String, nullable=False, index=True)
    details = Column(JSON, nullable=True)  # Never holds passwords or hashes
    ip_address = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    identity = relationship("Identity")

    def __repr__(self):
        return f"<AuditLog(id={self.id}, identity_id={self.identity_id}, action='{self.action}', timestamp='{self.timestamp}')>"
