import pytest

from caretalk.config import Settings
from caretalk.errors import ConfigError
from caretalk.main import build_orchestrator
from caretalk.services.tts_gtts import GTTSService


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", "/tmp/creds.json")
    return monkeypatch


class TestSettings:

    def test_defaults(self, env):
        cfg = Settings()
        cfg.validate()
        assert cfg.DEFAULT_SOURCE_LANGUAGE == "en-US"
        assert cfg.DEFAULT_TARGET_LANGUAGE == "hi-IN"
        assert cfg.TRANSLATE_INTERIM_RESULTS is True
        assert cfg.TTS_PROVIDER == "google"
        assert cfg.cors_origins() == ["*"]

    @pytest.mark.parametrize("missing", ["OPENAI_API_KEY", "GOOGLE_APPLICATION_CREDENTIALS"])
    def test_each_secret_is_required(self, env, missing):
        env.delenv(missing)
        with pytest.raises(ConfigError, match=missing):
            Settings().validate()

    def test_unknown_tts_provider(self, env):
        env.setenv("TTS_PROVIDER", "espeak")
        with pytest.raises(ConfigError):
            Settings().validate()

    def test_flags_and_origins(self, env):
        env.setenv("TRANSLATE_INTERIM_RESULTS", "false")
        env.setenv("FRONTEND_ORIGIN", "http://localhost:3000, https://caretalk.example")
        cfg = Settings()
        assert cfg.TRANSLATE_INTERIM_RESULTS is False
        assert cfg.cors_origins() == ["http://localhost:3000", "https://caretalk.example"]


class TestBuildOrchestrator:

    def test_wires_configured_services(self, env):
        env.setenv("TTS_PROVIDER", "gtts")
        env.setenv("LIBRETRANSLATE_URL", "https://libre.example")
        env.setenv("TRANSLATE_INTERIM_RESULTS", "0")
        orch = build_orchestrator(Settings())
        assert isinstance(orch.synthesizer, GTTSService)
        assert orch.translator.libre.base_urls == ["https://libre.example"]
        assert orch.interim_results is False

    def test_refuses_without_secrets(self, env):
        env.delenv("OPENAI_API_KEY")
        with pytest.raises(ConfigError):
            build_orchestrator(Settings())
