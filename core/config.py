from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "development"

    DATABASE_URL: str
    SECRET_KEY: str
    STORE_TIMEOUT_SECONDS: int = 5

    # Token lifetimes
    SESSION_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    VERIFICATION_TOKEN_EXPIRE_HOURS: int = 24
    TOKEN_BYTES: int = 32
    MAX_ACTIVE_SESSIONS: int = 5

    # Hashing cost factors (bcrypt rounds)
    PASSWORD_HASH_ROUNDS: int = 12
    TOKEN_HASH_ROUNDS: int = 10

    # Janitor retention windows
    SESSION_RETENTION_DAYS: int = 7
    REFRESH_TOKEN_RETENTION_DAYS: int = 1

    # Cookies
    REFRESH_COOKIE_PATH: str = "/auth/refresh"
    COOKIE_DOMAIN: str | None = None

    MAIL_USERNAME: str
    MAIL_PASSWORD: str
    MAIL_FROM: str
    MAIL_SERVER: str
    MAIL_PORT: int
    VERIFY_EMAIL_URL: str = "http://localhost:3001/verify-email"

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]
    RATE_LIMIT_ENABLED: bool = True

    @property
    def is_production(self) -> bool:
        return self.ENV == "production"


settings = Settings()
