"""ConfigService / EngineSettings Tests"""

import json

import pytest

from traywatch.core.base.lifecycle_component import ComponentState
from traywatch.core.services.config import ConfigKeys, ConfigService, EngineSettings, get_default_config
from traywatch.utils import ConfigurationError


def _write(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")


class TestConfigService:
    def test_missing_file_uses_defaults(self, tmp_path):
        service = ConfigService(tmp_path / "config.json")

        assert service.start()
        assert service.get_all_settings() == get_default_config()

    def test_partial_file_is_merged_with_defaults(self, tmp_path):
        config_file = tmp_path / "config.json"
        _write(config_file, {"menu": {"max_depth": 4}})
        service = ConfigService(config_file)

        service.start()

        assert service.get_setting(ConfigKeys.MENU_MAX_DEPTH) == 4
        assert service.get_setting(ConfigKeys.WATCHER_BUS_NAME) == "org.kde.StatusNotifierWatcher"

    def test_invalid_values_fail_start(self, tmp_path):
        config_file = tmp_path / "config.json"
        _write(config_file, {"bus": {"call_timeout": -1}, "menu": {"max_depth": 0}})
        service = ConfigService(config_file)

        assert service.start() is False
        assert service.state == ComponentState.ERROR
        assert isinstance(service.last_error, ConfigurationError)
        assert "menu.max_depth" in service.last_error.message

    def test_zero_command_queue_is_rejected(self, tmp_path):
        config_file = tmp_path / "config.json"
        _write(config_file, {"commands": {"queue_size": 0}})
        service = ConfigService(config_file)

        assert service.start() is False
        assert "commands.queue_size" in service.last_error.message

    def test_corrupt_file_falls_back_to_defaults(self, tmp_path):
        config_file = tmp_path / "config.json"
        config_file.write_text("{not json", encoding="utf-8")
        service = ConfigService(config_file)

        assert service.start()
        assert service.get_setting("host.unique_id") == "traywatch"

    def test_set_setting_immediate_persists(self, tmp_path):
        config_file = tmp_path / "config.json"
        service = ConfigService(config_file)
        service.start()

        service.set_setting("icon.preference", "name", immediate=True)

        assert service.get_setting("icon.preference") == "name"
        assert json.loads(config_file.read_text(encoding="utf-8"))["icon"]["preference"] == "name"

    def test_get_setting_default(self, tmp_path):
        service = ConfigService(tmp_path / "config.json")
        service.start()

        assert service.get_setting("does.not.exist", "fallback") == "fallback"

    def test_validate_reports_warnings(self, tmp_path):
        config_file = tmp_path / "config.json"
        _write(config_file, {"icon": {"preference": "vector"}})
        service = ConfigService(config_file)
        service.start()

        result = service.validate()

        assert result["valid"] is True
        assert any("vector" in w for w in result["warnings"])


class TestEngineSettings:
    def test_defaults_match_default_config(self):
        settings = EngineSettings.from_config(None)

        assert settings == EngineSettings()

    def test_from_config_sections(self):
        settings = EngineSettings.from_config(
            {
                "watcher": {"fallback_to_host": False},
                "host": {"register": False, "unique_id": "panel"},
                "bus": {"type": "system", "call_timeout": 2},
                "icon": {"target_size": 22, "default_name": None},
                "menu": {"max_depth": 3},
            }
        )

        assert settings.fallback_to_host is False
        assert settings.register_host is False
        assert settings.host_id == "panel"
        assert settings.bus_type == "system"
        assert settings.call_timeout == 2.0
        assert settings.icon_target_size == 22
        assert settings.default_icon is None
        assert settings.menu_max_depth == 3
        assert settings.watcher_name == "org.kde.StatusNotifierWatcher"

    @pytest.mark.parametrize("section", ["watcher", "bus", "icon"])
    def test_null_section_uses_defaults(self, section):
        assert EngineSettings.from_config({section: None}) == EngineSettings()
