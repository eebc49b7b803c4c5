"""Application settings using Pydantic Settings"""
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./classboom.db"

    APP_ENV: str = "dev"

    IMPORT_MAX_UPLOAD_MB: int = 10
    IMPORT_MAX_ROWS: int = 1000
    IMPORT_BATCH_SIZE: int = 50
    IMPORT_MAX_WORKERS: int = 1
    IMPORT_PREVIEW_LIMIT: int = 10
    IMPORT_SESSION_TTL_MINUTES: int = 60

    @field_validator("APP_ENV")
    @classmethod
    def validate_app_env(cls, v: str) -> str:
        allowed = ["dev", "staging", "prod"]
        if v not in allowed:
            raise ValueError(f"APP_ENV must be one of: {allowed}")
        return v

    @field_validator("IMPORT_BATCH_SIZE", "IMPORT_MAX_WORKERS", "IMPORT_MAX_ROWS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @property
    def import_max_upload_bytes(self) -> int:
        return self.IMPORT_MAX_UPLOAD_MB * 1024 * 1024

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()


def get_settings() -> Settings:
    return settings
