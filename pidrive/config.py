from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8')

    app_name: str = 'PiDrive'
    app_host: str = '0.0.0.0'
    app_port: int = 3000
    mount_root: str = '/mnt/shared'
    volume_image: str = '/home/orthicon/shared.img'
    volume_fs_type: str = 'exfat'
    volume_offset: int = Field(default=210763776, ge=0)
    volume_uid: int = 1000
    volume_gid: int = 1000
    mount_use_sudo: bool = False
    sync_marker_file: str = '/tmp/sync_needed'
    static_dir: str = 'public'
    log_level: str = 'info'
    cors_origins: str = '*'
    command_timeout_sec: int = Field(default=20, ge=2, le=300)


settings = Settings()
