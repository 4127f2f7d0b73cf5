from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", extra="ignore")

  database_url: str = "sqlite+aiosqlite:///./data/ztask.db"
  app_secret: str = "dev-secret-change-me"
  app_version: str = "v2026-10-19"
  build_sha: str = "dev"
  log_level: str = "INFO"

  cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000"
  frontend_url: str = "http://localhost:3000"

  # Client side of the persistence bridge.
  storage_base_url: str = "http://localhost:8000"
  storage_timeout_seconds: float = 15.0

  retention_hours: int = 24
  sweep_interval_seconds: int = 3600
  end_of_column_offset: float = 20.0

  invitation_ttl_days: int = 7

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
