"""
Configuration management for the Modbus Web API
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings, overridable through MODBUS_WEB_* environment variables"""

    # API Settings
    api_title: str = "Modbus Web API"
    api_version: str = "1.0.0"
    api_description: str = "Browser-facing gateway to Modbus TCP and RTU devices"

    # Server Settings
    listen_host: str = "0.0.0.0"
    listen_port: int = 80

    # Build metadata, stamped by the release pipeline
    build_time: str = "unknown"
    git_commit: str = "running locally"

    # Logging
    log_level: str = "INFO"
    log_format: str = "json_compact"
    log_file_path: str = ""

    # Session key cookie
    session_cookie_name: str = "UserID"
    session_cookie_max_age: int = 10800  # seconds

    # Transport Settings
    connect_timeout: float = 2.0  # seconds
    transport_idle_timeout: float = 30 * 60  # seconds

    # Session lifecycle
    idle_eviction_threshold: float = 30 * 60  # seconds
    reconnect_cooldown: float = 5.0  # seconds
    sweep_interval: float = 60.0  # seconds

    class Config:
        env_prefix = "MODBUS_WEB_"
        env_file = ".env"


settings = Settings()
