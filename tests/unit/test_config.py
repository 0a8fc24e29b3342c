"""Tests for configuration management"""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from video_library.core.config import ConfigService, LoggingConfig, YouTubeProviderConfig


class TestConfigService:
    """Test ConfigService functionality"""

    def test_load_from_yaml(self, tmp_path: Path) -> None:
        """Test loading configuration from YAML file"""
        config_file = tmp_path / "config.yaml"
        config_data = {
            "server": {"host": "127.0.0.1", "port": 9000},
            "supabase": {"url": "https://proj.supabase.co", "key": "anon", "table": "videos"},
            "logging": {"level": "DEBUG"},
        }

        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

        service = ConfigService(str(config_file))
        config = service.load()

        assert config.server.host == "127.0.0.1"
        assert config.server.port == 9000
        assert config.supabase.url == "https://proj.supabase.co"
        assert config.supabase.table == "videos"
        assert config.logging.level == "DEBUG"

    def test_load_with_defaults(self, tmp_path: Path) -> None:
        """Test loading configuration with default values"""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("{}")

        service = ConfigService(str(config_file))
        config = service.load()

        assert config.server.port == 8000
        assert config.supabase.table == "exercise_videos"
        assert config.supabase.db_schema == "public"
        assert config.selection.namespace_by_owner is True
        assert config.sessions.idle_minutes == 30
        assert config.youtube.retry_backoff == [1, 2, 4]
        assert config.testing.test_mode is False

    def test_missing_file_uses_defaults(self, tmp_path: Path) -> None:
        """Test a missing config file is not an error"""
        service = ConfigService(str(tmp_path / "absent.yaml"))
        config = service.load()

        assert config.logging.format == "json"

    def test_environment_variable_override(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test environment variable overrides YAML configuration"""
        config_file = tmp_path / "config.yaml"
        with open(config_file, "w") as f:
            yaml.dump({"sessions": {"idle_minutes": 10}, "supabase": {"table": "videos"}}, f)

        monkeypatch.setenv("APP_SESSIONS_IDLE_MINUTES", "45")

        config = ConfigService(str(config_file)).load()

        assert config.sessions.idle_minutes == 45
        assert config.supabase.table == "videos"

    def test_list_from_environment(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test JSON list values from environment variables"""
        monkeypatch.setenv("APP_SECURITY_API_KEYS", '["key-one", "key-two"]')

        config = ConfigService(str(tmp_path / "absent.yaml")).load()

        assert config.security.api_keys == ["key-one", "key-two"]

    def test_config_path_from_environment(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test APP_CONFIG_PATH selects the YAML file"""
        config_file = tmp_path / "custom.yaml"
        config_file.write_text("selection:\n  path: /var/lib/videos/selection.json\n")
        monkeypatch.setenv("APP_CONFIG_PATH", str(config_file))

        config = ConfigService().load()

        assert config.selection.path == "/var/lib/videos/selection.json"


class TestConfigValidation:
    """Test ConfigService.validate()"""

    def test_validate_before_load_raises(self) -> None:
        """Test validate requires a loaded configuration"""
        with pytest.raises(ValueError, match="not loaded"):
            ConfigService().validate()

    def test_config_property_before_load_raises(self) -> None:
        """Test config property requires a loaded configuration"""
        with pytest.raises(ValueError, match="not loaded"):
            _ = ConfigService().config

    def test_supabase_credentials_required(self, tmp_path: Path) -> None:
        """Test Supabase credentials are required outside test mode"""
        config_file = tmp_path / "config.yaml"
        config_file.write_text("security:\n  api_keys: [k]\n")
        service = ConfigService(str(config_file))
        service.load()

        with pytest.raises(ValueError, match="Supabase"):
            service.validate()

    def test_test_mode_skips_supabase_check(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test test mode runs without Supabase credentials"""
        monkeypatch.setenv("APP_TESTING_TEST_MODE", "true")
        monkeypatch.setenv("APP_SECURITY_API_KEYS", '["k"]')
        service = ConfigService(str(tmp_path / "absent.yaml"))
        service.load()

        assert service.validate() is True

    def test_api_keys_required_unless_degraded(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test API keys are required unless degraded start is allowed"""
        monkeypatch.setenv("APP_TESTING_TEST_MODE", "true")
        service = ConfigService(str(tmp_path / "absent.yaml"))
        service.load()

        with pytest.raises(ValueError, match="API key"):
            service.validate()

        monkeypatch.setenv("APP_SECURITY_ALLOW_DEGRADED_START", "true")
        service.load()
        assert service.validate() is True


class TestSectionValidators:
    """Test field validators on config sections"""

    def test_log_level_normalized(self) -> None:
        """Test log level is upper-cased"""
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        """Test unknown log level is rejected"""
        with pytest.raises(ValidationError):
            LoggingConfig(level="verbose")

    def test_retry_attempts_minimum(self) -> None:
        """Test retry_attempts must be positive"""
        with pytest.raises(ValidationError):
            YouTubeProviderConfig(retry_attempts=0)
