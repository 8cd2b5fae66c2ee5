"""Tests for configuration."""

import pytest

from interlude.config import Config, hour_in_window


class TestHourWindows:
    @pytest.mark.parametrize(
        "hour,window,expected",
        [
            (6, (6, 23), True),
            (22, (6, 23), True),
            (23, (6, 23), False),
            (5, (6, 23), False),
            (23, (23, 6), True),
            (0, (23, 6), True),
            (5, (23, 6), True),
            (6, (23, 6), False),
            (12, (23, 6), False),
        ],
    )
    def test_window_membership(self, hour, window, expected):
        assert hour_in_window(hour, window) is expected

    def test_daytime_and_night(self, config):
        assert config.is_daytime(10)
        assert not config.is_daytime(23)
        assert config.is_night(2)
        assert not config.is_night(12)

    def test_eleven_pm_is_night(self, config):
        # End hour exclusive: 23:00 already belongs to the night window
        assert config.is_daytime(22)
        assert not config.is_daytime(23)
        assert config.is_night(23)
        assert not config.is_night(22)


class TestConfig:
    def test_defaults_validate(self, config):
        assert config.validate() == []

    def test_type_cooldowns(self, config):
        assert config.type_cooldown_minutes("reminder") == 10.0
        assert config.type_cooldown_minutes("sustained_use") == 15.0
        assert config.type_cooldown_minutes("unknown") == config.GLOBAL_COOLDOWN_MINUTES

    def test_validate_reports_problems(self, config):
        config.MONITORED_APPS = []
        config.MAX_INTERVENTIONS_PER_HOUR = 50
        config.MAX_COMBINED_COOLDOWN_MULTIPLIER = 0.5
        config.POLL_INTERVAL_ACTIVE = 0

        errors = config.validate()
        assert "MONITORED_APPS is empty" in errors
        assert "POLL_INTERVAL_ACTIVE must be positive" in errors
        assert any("MAX_INTERVENTIONS_PER_HOUR" in e for e in errors)
        assert any("MAX_COMBINED_COOLDOWN_MULTIPLIER" in e for e in errors)

    def test_instances_do_not_share_mutables(self):
        a = Config(load_user_config=False)
        b = Config(load_user_config=False)
        a.TYPE_COOLDOWN_MINUTES["reminder"] = 99.0

        assert b.TYPE_COOLDOWN_MINUTES["reminder"] == 10.0

    def test_user_config_overrides(self, tmp_path, monkeypatch):
        (tmp_path / "config.py").write_text(
            'MONITORED_APPS = ["com.example.only"]\nGLOBAL_COOLDOWN_MINUTES = 7.5\n'
        )
        monkeypatch.chdir(tmp_path)

        config = Config()

        assert config.MONITORED_APPS == ["com.example.only"]
        assert config.GLOBAL_COOLDOWN_MINUTES == 7.5
        assert config.SESSION_GAP_SECONDS == 30.0
