"""
Guest-related Pydantic schemas
"""

from typing import List, Optional
from pydantic import BaseModel, Field

UNASSIGNED_TABLE = "Unassigned"

# One spreadsheet line: stringified, trimmed cell values in column order
RawRow = List[str]

class Guest(BaseModel):
    """A single entry of the guest directory"""
    name: str = Field(min_length=1)
    table: str = UNASSIGNED_TABLE
    downloaded: bool = False

class TableSummary(BaseModel):
    """Guest count for one table"""
    name: str
    count: int

class ImportResult(BaseModel):
    """Outcome of importing a spreadsheet"""
    guests: List[Guest]
    hint: Optional[str] = None

class DownloadRequest(BaseModel):
    """Guest invitation download request"""
    name: str
    table: Optional[str] = None
