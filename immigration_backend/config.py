"""
Configuration for the Immigration Backend
=========================================

Environment variables:
- ENVIRONMENT: development|production (default: development)
- APP_URL: Public web app URL used in email links
- FIREBASE_DATABASE_URL: Realtime database root (https://<project>.firebaseio.com)
- FIREBASE_DATABASE_SECRET: Database secret / access token for the REST API
- EXPO_PUSH_URL: Expo push endpoint (default: https://exp.host/--/api/v2/push/send)
- EXPO_ACCESS_TOKEN: Optional Expo access token
- CRON_SECRET: Bearer secret for the scheduled-deletions trigger
- RATE_LIMIT_ENABLED: Enable Redis rate limiting (default: true)
"""

from typing import Optional, List
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables"""

    environment: str = "development"
    app_url: str = "http://localhost:3000"

    # Realtime database (call signaling + web notifications)
    firebase_database_url: Optional[str] = None
    firebase_database_secret: Optional[str] = None
    realtime_timeout: int = 10

    # Mobile push (Expo)
    expo_push_url: str = "https://exp.host/--/api/v2/push/send"
    expo_access_token: Optional[str] = None
    push_timeout: int = 10

    # Scheduled deletions
    cron_secret: Optional[str] = None
    inactive_login_months: int = 6
    inactive_case_months: int = 3
    deletion_grace_days: int = 30

    # Rate limiting
    rate_limit_enabled: bool = True
    redis_url: str = "redis://localhost:6379/0"

    # Pagination
    default_page_size: int = 20
    max_page_size: int = 100

    # Service info
    service_version: str = "1.0.0"

    class Config:
        env_prefix = ""
        case_sensitive = False
        env_file = ".env"
        env_file_encoding = "utf-8"

    def validate_integrations(self) -> List[str]:
        """Validate external integration config, return list of warnings"""
        warnings = []

        if not self.firebase_database_url:
            warnings.append("FIREBASE_DATABASE_URL not set (call signaling and realtime notifications disabled)")
        elif not self.firebase_database_secret:
            warnings.append("FIREBASE_DATABASE_URL set but FIREBASE_DATABASE_SECRET missing")

        if not self.cron_secret:
            warnings.append("CRON_SECRET not set (scheduled-deletions trigger is locked)")

        return warnings


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
