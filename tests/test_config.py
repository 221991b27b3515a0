"""환경 변수 설정 테스트"""

from deadline_engine import config


class TestEnvironmentParsing:
    """환경 변수 파싱 테스트"""

    def test_integer_value(self, monkeypatch):
        monkeypatch.setenv("DEADLINE_ADJUSTMENT_LIMIT", "30")
        assert config._get_int("DEADLINE_ADJUSTMENT_LIMIT", 14) == 30

    def test_invalid_integer_falls_back(self, monkeypatch):
        monkeypatch.setenv("DEADLINE_ADJUSTMENT_LIMIT", "two weeks")
        assert config._get_int("DEADLINE_ADJUSTMENT_LIMIT", 14) == 14

    def test_unset_integer(self, monkeypatch):
        monkeypatch.delenv("API_PORT", raising=False)
        assert config._get_int("API_PORT", 8000) == 8000

    def test_boolean_values(self, monkeypatch):
        monkeypatch.setenv("SQL_ECHO", "yes")
        assert config._get_bool("SQL_ECHO") is True

        monkeypatch.setenv("SQL_ECHO", "off")
        assert config._get_bool("SQL_ECHO") is False

    def test_default_rules_dir_ships_seed_file(self):
        assert (config.PROJECT_ROOT / "rules" / "sierra_leone_2025.yaml").exists()
