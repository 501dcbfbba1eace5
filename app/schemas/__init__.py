"""
Pydantic schemas package
"""

from .common import *
from .guest import *
from .invitation import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "Guest",
    "RawRow",
    "TableSummary",
    "ImportResult",
    "DownloadRequest",
    "UNASSIGNED_TABLE",
    "AssetType",
    "Invitation",
]
