from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_ROOT = '/var/lib/botfs'


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8')

    app_name: str = 'Bot FS Gateway'
    app_host: str = '0.0.0.0'
    app_port: int = 8080
    data_root: str = DEFAULT_DATA_ROOT
    log_level: str = 'info'
    cors_origins: str = ''
    file_mode: int = Field(default=0o644, ge=0, le=0o777)
    dir_mode: int = Field(default=0o755, ge=0, le=0o777)
    upload_chunk_bytes: int = Field(default=1024 * 1024, ge=4096, le=64 * 1024 * 1024)


settings = Settings()
