"""
Tests for Settings.from_env.

Run with: pytest tests/test_config.py -v
"""

import pytest

from app.config import Settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in (
            "ENGINE_PATH",
            "ENGINE_OPTIONS",
            "ANALYSIS_TIMEOUT",
            "ANALYSIS_DEFAULT_DEPTH",
            "KIFU_DEFAULT_DEPTH",
            "REQUIRE_ENGINE",
            "PORT",
            "LOG_LEVEL",
            "LOG_FILE",
        ):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()
        assert settings.engine_path.endswith("YaneuraOu-by-gcc")
        assert settings.engine_options == {}
        assert settings.analysis_timeout == 30.0
        assert settings.default_depth == 15
        assert settings.kifu_default_depth == 12
        assert settings.require_engine is False
        assert settings.port == 3000
        assert settings.log_file is None

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ENGINE_PATH", "/opt/yaneuraou/YaneuraOu")
        monkeypatch.setenv("ENGINE_OPTIONS", "EvalDir=eval; USI_Hash=1024;Threads=4")
        monkeypatch.setenv("ANALYSIS_TIMEOUT", "12.5")
        monkeypatch.setenv("REQUIRE_ENGINE", "yes")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        settings = Settings.from_env()
        assert settings.engine_path == "/opt/yaneuraou/YaneuraOu"
        assert list(settings.engine_options.items()) == [
            ("EvalDir", "eval"),
            ("USI_Hash", "1024"),
            ("Threads", "4"),
        ]
        assert settings.analysis_timeout == 12.5
        assert settings.require_engine is True
        assert settings.port == 8080
        assert settings.log_level == "DEBUG"

    def test_malformed_engine_option(self, monkeypatch):
        monkeypatch.setenv("ENGINE_OPTIONS", "Threads")
        with pytest.raises(ValueError):
            Settings.from_env()

    def test_non_positive_timeout(self):
        with pytest.raises(ValueError):
            Settings(analysis_timeout=0)
