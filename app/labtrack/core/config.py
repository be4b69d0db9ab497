from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env")

    APP_NAME: str = "LabTrack"
    SECRET_KEY: str = "change-me"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    DATABASE_URL: str = "sqlite+pysqlite:///./labtrack.db"
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True
    SLIP_NUMBER_PREFIX: str = "PS"
    REQUEST_NUMBER_PREFIX: str = "RQ"
    OVERRIDE_ROLES: str = "ADMIN,ACCOUNT_MANAGER"
    NOTIFY_WEBHOOK_URL: str = ""
    NOTIFY_WEBHOOK_TIMEOUT_SEC: float = 5.0

    @property
    def override_roles(self) -> set[str]:
        return {role.strip().upper() for role in self.OVERRIDE_ROLES.split(",") if role.strip()}


settings = Settings()
