from pydantic_settings import BaseSettings
from pydantic import ConfigDict

class Settings(BaseSettings):
    model_config = ConfigDict(env_file=".env", extra="ignore")

    ENV: str = "development"

    DATABASE_URL: str
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    AUTH_CODE_EXPIRE_MINUTES: int = 5
    BLACKLIST_RETENTION_DAYS: int = 90

    # OAuth / PKCE
    SESSION_SECRET_KEY: str
    PKCE_CHALLENGE_MAX_AGE_MINUTES: int = 10
    OAUTH_STATE_MAX_AGE_MINUTES: int = 10
    GOOGLE_CLIENT_ID: str = ""
    GOOGLE_CLIENT_SECRET: str = ""
    API_URL: str = "http://localhost:8000"
    APP_DEEP_LINK_SCHEME: str = "behaviortracker"
    OAUTH_HTTP_TIMEOUT_SECONDS: float = 10.0

    # Approval gate allow-list, ignored in production
    APPROVAL_BYPASS_EMAILS: list[str] = []
    APPROVAL_BYPASS_DOMAINS: list[str] = []

    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    CORS_ORIGINS: list[str] = ["http://localhost:3000"]

    @property
    def oauth_redirect_uri(self) -> str:
        return f"{self.API_URL.rstrip('/')}/auth/oauth/callback"


settings = Settings()
