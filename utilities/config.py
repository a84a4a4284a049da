"""
Configuration management using environment variables.
Handles database, storage and logging settings with validation and defaults.
"""

from typing import List, Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings
from pathlib import Path

class LibraryConfig(BaseSettings):
    """
    Configuration class for the library backend.
    Uses pydantic BaseSettings for environment variable management.
    """

    # MongoDB Configuration
    mongodb_url: str = Field(default="mongodb://localhost:27017", env="MONGODB_URL")
    mongodb_database: str = Field(default="perpustakaan", env="MONGODB_DATABASE")

    # Upload Storage
    upload_dir: str = Field(default="uploads", env="UPLOAD_DIR")
    max_upload_size: int = Field(default=50 * 1024 * 1024, env="MAX_UPLOAD_SIZE")
    allowed_extensions: List[str] = Field(
        default=[".pdf", ".epub", ".mobi", ".txt"], env="ALLOWED_EXTENSIONS"
    )

    # Logging Configuration
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    # Development/Testing
    debug: bool = Field(default=False, env="DEBUG")

    @validator('max_upload_size')
    def validate_max_upload_size(cls, v):
        """Ensure upload size limit is positive."""
        if v <= 0:
            raise ValueError('max_upload_size must be positive')
        return v

    @validator('allowed_extensions')
    def validate_allowed_extensions(cls, v):
        """Normalize extensions to lowercase with a leading dot."""
        return [ext.lower() if ext.startswith('.') else f'.{ext.lower()}' for ext in v]

    @validator('log_level')
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @validator('log_format')
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    class Config:
        """Pydantic configuration."""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields from .env

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path as Path object."""
        if self.log_file:
            return Path(self.log_file)
        return None

    def get_books_dir(self) -> Path:
        """Directory holding uploaded book files."""
        return Path(self.upload_dir) / "books"


# Global configuration instance
config = LibraryConfig()
