"""Configuration management with YAML and environment variable support"""

import os
from typing import Any, Dict, List, Optional, Tuple, Type

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class BaseConfigSection(BaseSettings):
    """Base class for all config sections with correct environment variable precedence.

    This class customizes the settings source priority to ensure that:
    1. Environment variables have highest priority
    2. Init kwargs (YAML data) have second priority
    3. Default values have lowest priority
    """

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings source priority: env vars > init kwargs > defaults."""
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)


class ServerConfig(BaseConfigSection):
    """Server configuration"""

    host: str = (
        "0.0.0.0"  # nosec B104 - Intentional binding to all interfaces for containerized deployment
    )
    port: int = 8000

    model_config = SettingsConfigDict(env_prefix="APP_SERVER_")


class SupabaseConfig(BaseConfigSection):
    """Supabase project and table configuration"""

    url: str = ""
    key: str = ""
    table: str = "exercise_videos"
    db_schema: str = "public"

    model_config = SettingsConfigDict(env_prefix="APP_SUPABASE_")


class YouTubeProviderConfig(BaseConfigSection):
    """YouTube Data API provider configuration"""

    enabled: bool = True
    api_key: str = ""
    base_url: str = "https://www.googleapis.com/youtube/v3"
    embed_origin: Optional[str] = None
    timeout: float = 10.0  # seconds
    retry_attempts: int = 3
    retry_backoff: List[float] = Field(default_factory=lambda: [1, 2, 4])
    cache_ttl: int = 3600  # seconds
    cache_size: int = 256

    model_config = SettingsConfigDict(env_prefix="APP_YOUTUBE_")

    @field_validator("retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry_attempts must be at least 1")
        return v


class SelectionConfig(BaseConfigSection):
    """Durable current-video selection configuration"""

    path: str = ".video_library/selection.json"
    namespace_by_owner: bool = True

    model_config = SettingsConfigDict(env_prefix="APP_SELECTION_")


class SessionsConfig(BaseConfigSection):
    """Per-owner sync session configuration"""

    idle_minutes: int = 30
    cleanup_interval: int = 300  # seconds

    model_config = SettingsConfigDict(env_prefix="APP_SESSIONS_")


class LoggingConfig(BaseConfigSection):
    """Logging configuration"""

    level: str = "INFO"
    format: str = "json"

    model_config = SettingsConfigDict(env_prefix="APP_LOGGING_")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return v_upper


class SecurityConfig(BaseConfigSection):
    """Security configuration"""

    api_keys: List[str] = Field(default_factory=list)
    allow_degraded_start: bool = False
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    model_config = SettingsConfigDict(env_prefix="APP_SECURITY_")


class MonitoringConfig(BaseConfigSection):
    """Monitoring configuration"""

    metrics_enabled: bool = True

    model_config = SettingsConfigDict(env_prefix="APP_MONITORING_")


class TestingConfig(BaseConfigSection):
    """Test mode configuration (in-memory store and feed, no network)"""

    test_mode: bool = False

    model_config = SettingsConfigDict(env_prefix="APP_TESTING_")


class Config(BaseSettings):
    """Main application configuration"""

    server: ServerConfig = Field(default_factory=ServerConfig)
    supabase: SupabaseConfig = Field(default_factory=SupabaseConfig)
    youtube: YouTubeProviderConfig = Field(default_factory=YouTubeProviderConfig)
    selection: SelectionConfig = Field(default_factory=SelectionConfig)
    sessions: SessionsConfig = Field(default_factory=SessionsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    testing: TestingConfig = Field(default_factory=TestingConfig)

    model_config = SettingsConfigDict(env_prefix="APP_")


class ConfigService:
    """Service for loading and managing configuration"""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or os.environ.get("APP_CONFIG_PATH", "config.yaml")
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from YAML file with environment variable overrides.

        Environment variables take precedence over YAML values, which in turn
        take precedence over defaults.
        """
        config_data: Dict[str, Any] = {}

        # Load from YAML file if it exists
        if os.path.exists(self.config_path):
            with open(self.config_path, "r", encoding="utf-8") as f:
                yaml_data = yaml.safe_load(f)
                if yaml_data:
                    config_data = yaml_data

        self._config = Config(
            server=ServerConfig(**config_data.get("server", {})),
            supabase=SupabaseConfig(**config_data.get("supabase", {})),
            youtube=YouTubeProviderConfig(**config_data.get("youtube", {})),
            selection=SelectionConfig(**config_data.get("selection", {})),
            sessions=SessionsConfig(**config_data.get("sessions", {})),
            logging=LoggingConfig(**config_data.get("logging", {})),
            security=SecurityConfig(**config_data.get("security", {})),
            monitoring=MonitoringConfig(**config_data.get("monitoring", {})),
            testing=TestingConfig(**config_data.get("testing", {})),
        )

        return self._config

    def validate(self) -> bool:
        """Validate the loaded configuration"""
        if self._config is None:
            raise ValueError("Configuration not loaded. Call load() first.")

        if not self._config.testing.test_mode:
            if not self._config.supabase.url or not self._config.supabase.key:
                raise ValueError("Supabase url and key must be configured")

        if not self._config.security.api_keys and not self._config.security.allow_degraded_start:
            raise ValueError("At least one API key must be configured")

        return True

    @property
    def config(self) -> Config:
        """Get the loaded configuration"""
        if self._config is None:
            raise ValueError("Configuration not loaded. Call load() first.")
        return self._config
