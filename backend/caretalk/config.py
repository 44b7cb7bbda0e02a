import os
from pathlib import Path
from dotenv import load_dotenv

from .errors import ConfigError

# Load .env from the backend directory
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Settings:
    def __init__(self):
        # Required secrets
        self.OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
        self.GOOGLE_APPLICATION_CREDENTIALS: str = os.getenv("GOOGLE_APPLICATION_CREDENTIALS", "")

        # Translation
        self.OPENAI_API_URL: str = os.getenv("OPENAI_API_URL", "https://api.openai.com/v1/chat/completions")
        self.OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
        self.TRANSLATE_TEMPERATURE: float = float(os.getenv("TRANSLATE_TEMPERATURE", "1.0"))
        self.TRANSLATE_MAX_TOKENS: int = int(os.getenv("TRANSLATE_MAX_TOKENS", "100"))
        self.LIBRETRANSLATE_URL: str = os.getenv("LIBRETRANSLATE_URL", "")
        self.TRANSLATE_INTERIM_RESULTS: bool = _flag("TRANSLATE_INTERIM_RESULTS", "true")

        # Speech
        self.TTS_PROVIDER: str = os.getenv("TTS_PROVIDER", "google").lower()
        self.DEFAULT_SOURCE_LANGUAGE: str = os.getenv("DEFAULT_SOURCE_LANGUAGE", "en-US")
        self.DEFAULT_TARGET_LANGUAGE: str = os.getenv("DEFAULT_TARGET_LANGUAGE", "hi-IN")

        # Upstream call bounds (seconds)
        self.TRANSLATE_TIMEOUT_S: float = float(os.getenv("TRANSLATE_TIMEOUT_S", "15"))
        self.TTS_TIMEOUT_S: float = float(os.getenv("TTS_TIMEOUT_S", "15"))
        self.STREAM_OPEN_TIMEOUT_S: float = float(os.getenv("STREAM_OPEN_TIMEOUT_S", "10"))

        # Server
        self.HOST: str = os.getenv("HOST", "0.0.0.0")
        self.PORT: int = int(os.getenv("PORT", "5000"))
        self.FRONTEND_ORIGIN: str = os.getenv("FRONTEND_ORIGIN", "*")
        self.CLIENT_BUILD_DIR: str = os.getenv("CLIENT_BUILD_DIR", "client/build")

    def validate(self) -> None:
        missing = [
            name for name in ("OPENAI_API_KEY", "GOOGLE_APPLICATION_CREDENTIALS")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigError(f"Missing required environment variables: {', '.join(missing)}")
        if self.TTS_PROVIDER not in ("google", "gtts"):
            raise ConfigError(f"TTS_PROVIDER must be 'google' or 'gtts', got: {self.TTS_PROVIDER}")

    def cors_origins(self) -> list:
        if self.FRONTEND_ORIGIN == "*":
            return ["*"]
        return [o.strip() for o in self.FRONTEND_ORIGIN.split(",") if o.strip()]

settings = Settings()
