"""
Configuration settings for the application
"""

import os
from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""
    
    # Local cache database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./guest_directory.db")
    CACHE_KEY: str = "finder-flex:guest-list"
    
    # Remote store. Both values must be set for the remote to count as configured.
    FIREBASE_PROJECT_ID: str = os.getenv("FIREBASE_PROJECT_ID", "")
    FIREBASE_CREDENTIALS: str = os.getenv("FIREBASE_CREDENTIALS", "")
    
    # Bundled guest list files, tried in order
    DATA_DIR: str = os.getenv("DATA_DIR", "data")
    BUNDLED_GUEST_FILES: List[str] = [
        "guest-list.xlsx",
        "guest-list.csv",
    ]
    
    # Invitation assets
    UPLOAD_DIR: str = os.getenv("UPLOAD_DIR", "uploads")
    # Shipped invitations live at DATA_DIR/<dir>/<table label><ext>
    BUNDLED_INVITATION_DIR: str = "invitations"
    BUNDLED_INVITATION_EXTENSIONS: List[str] = [".pdf", ".png", ".jpg", ".jpeg"]
    
    # Security
    ADMIN_TOKEN: str = os.getenv("ADMIN_TOKEN", "admin_token_123")
    
    # CORS
    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:8000",
    ]
    
    # File limits
    MAX_UPLOAD_SIZE: int = 10 * 1024 * 1024  # 10MB
    
    # Rate limiting
    RATE_LIMIT_PER_MINUTE: int = 30
    
    # Name matching
    MIN_PARTIAL_QUERY_LENGTH: int = 9
    FUZZY_MATCH_THRESHOLD: float = 0.8
    
    @property
    def remote_configured(self) -> bool:
        return bool(self.FIREBASE_PROJECT_ID.strip() and self.FIREBASE_CREDENTIALS.strip())
    
    @property
    def bundled_invitation_root(self) -> str:
        return os.path.join(self.DATA_DIR, self.BUNDLED_INVITATION_DIR)
    
    @property
    def invitations_cache_key(self) -> str:
        return f"{self.CACHE_KEY}:uploads"
    
    class Config:
        env_file = ".env"

settings = Settings()
