"""
Environment configuration and constants.
"""
from typing import List, Optional
from dotenv import load_dotenv
from pydantic_settings import BaseSettings

# Load environment variables from .env file at module import time
try:
    load_dotenv()
except (PermissionError, OSError):
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # API Configuration
    api_title: str = "Test Plan Manager"
    api_version: str = "0.1.0"
    
    # Jira defaults (used by the proxy when the caller omits credentials)
    jira_instance_url: Optional[str] = None
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None
    
    # Key-value store; empty string disables persistence
    storage_url: str = "sqlite:///./data/testplan_manager.db"
    
    # Wizard
    title_display_seconds: float = 2.0
    
    # Outbound HTTP
    request_timeout: int = 30
    
    # Application Configuration
    debug: bool = False
    log_level: str = "INFO"
    cors_allowed_origins: str = ""
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables that aren't defined in the model
    
    def extra_origins(self) -> List[str]:
        """Comma-separated CORS_ALLOWED_ORIGINS as a list."""
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]


# Global settings instance
settings = Settings()
