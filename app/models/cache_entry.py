"""
Cache entry model
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime

from app.core.db import Base

class CacheEntry(Base):
    __tablename__ = "cache_entries"
    
    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
