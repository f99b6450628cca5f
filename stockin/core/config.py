from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "StockIn Engine"
    APP_PORT: int = 9210
    DEBUG: bool = False
    
    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "warehouse"
    POSTGRES_PORT: int = 5432
    DATABASE_URL_OVERRIDE: Optional[str] = None  # e.g. sqlite:///./stockin.db
    
    # Logging
    LOGS_PATH: str = "./logs"
    LOG_LEVEL: str = "INFO"
    
    # Remote atomic commit endpoint. Empty = local commit only
    REMOTE_COMMIT_URL: str = ""
    REMOTE_COMMIT_TIMEOUT: float = 15.0
    REMOTE_COMMIT_TOKEN: Optional[str] = None
    
    # Barcode issuance
    BARCODE_MAX_ATTEMPTS: int = 5
    BARCODE_SUFFIX_LENGTH: int = 4
    BARCODE_SEQUENCE_WIDTH: int = 4
    
    @property
    def DATABASE_URL(self) -> str:
        if self.DATABASE_URL_OVERRIDE:
            return self.DATABASE_URL_OVERRIDE
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
    
    class Config:
        env_file = ".env"
        extra = "ignore"

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
