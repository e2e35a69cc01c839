"""
Snapshot table for the SQL store medium
"""
from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.sql import func
from roadmap.db.session import Base

class SnapshotRecord(Base):
    """One serialized roadmap snapshot per store key"""
    __tablename__ = "snapshots"

    key = Column(String(255), primary_key=True)
    payload = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
