"""Application configuration and environment variables"""
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database Configuration
    MONGODB_URI: str = "mongodb://localhost:27017/advanced_crud"
    MONGODB_SERVER_SELECTION_TIMEOUT_MS: int = 5000

    # Server Configuration
    HOST: str = "0.0.0.0"
    PORT: int = 5000

    # CORS Configuration
    CORS_ORIGIN: str = "http://localhost:3000"

    # Rate limiting - fixed window per client IP
    RATE_LIMIT_WINDOW_MS: int = 15 * 60 * 1000
    RATE_LIMIT_MAX: int = 100

    # Authentication
    JWT_SECRET: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7
    BCRYPT_ROUNDS: int = 12

    # Static files served under /static
    STATIC_DIR: str = "public"

    # Email Configuration
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    EMAIL_FROM: str = ""
    EMAIL_ENABLED: bool = False

    # Application Configuration
    ENVIRONMENT: str = "development"  # development, production, test
    LOG_LEVEL: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def is_test(self) -> bool:
        return self.ENVIRONMENT == "test"

    @property
    def rate_limit_window_seconds(self) -> int:
        return max(1, self.RATE_LIMIT_WINDOW_MS // 1000)

    @property
    def rate_limit(self) -> str:
        """Limit string understood by slowapi, e.g. '100 per 900 seconds'"""
        return f"{self.RATE_LIMIT_MAX} per {self.rate_limit_window_seconds} seconds"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
