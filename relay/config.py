from typing import List, Optional, Union

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="NOX_", env_file=".env", extra="ignore")

    host: str = "127.0.0.1"
    port: int = 3001
    message_ttl_seconds: int = 300       # Сколько живёт сообщение
    sweep_interval_seconds: float = 60   # Как часто чистим просроченные
    search_limit: int = 10
    cors_allowed_origins: str = "*"      # "*" или список через запятую
    log_level: str = "INFO"
    log_file: Optional[str] = None

    def cors_origins(self) -> Union[str, List[str]]:
        if self.cors_allowed_origins.strip() == "*":
            return "*"
        return [o.strip() for o in self.cors_allowed_origins.split(",") if o.strip()]


settings = Settings()
