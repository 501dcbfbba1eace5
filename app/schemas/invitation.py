"""
Invitation-related Pydantic schemas
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

class AssetType(str, Enum):
    IMAGE = "image"
    PDF = "pdf"
    OTHER = "other"

class Invitation(BaseModel):
    """Invitation asset attached to a table"""
    table: str
    asset_type: AssetType
    asset_ref: str
    display_name: str
    mime_type: Optional[str] = None
    uploaded_at: datetime = Field(default_factory=datetime.utcnow)
    # Shipped under DATA_DIR rather than uploaded; never persisted
    bundled: bool = False
