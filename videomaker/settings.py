import json
from typing import Dict, List

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    # Listener
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    SHUTDOWN_GRACE_SECONDS: int = 5

    # Automation tick
    TICK_ENABLED: bool = True
    TICK_SECONDS: float = 6.0
    TICK_STEP: int = 5

    # Admin (shared secret via header/cookie, basic creds exchange for the cookie)
    ADMIN_SECRET: str | None = None
    ADMIN_USER: str = "admin"
    ADMIN_PASS: str | None = None
    ADMIN_COOKIE_NAME: str = "vm_admin"

    CORS_ORIGINS: str = "*"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_BUFFER_SIZE: int = 200

    # Stability AI
    STABILITY_API_KEY: str | None = None
    STABILITY_API_HOST: str = "https://api.stability.ai"
    STABILITY_ENGINE: str = "stable-diffusion-xl-1024-v1-0"

    # OpenAI TTS
    OPENAI_API_KEY: str | None = None
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_TTS_MODEL: str = "tts-1"
    OPENAI_TTS_VOICE: str = "alloy"

    UPSTREAM_TIMEOUT: float = 120.0

    # Google Sheet queue
    SHEET_ID: str | None = None
    SHEET_NAME: str | None = None
    SHEET_GID: str | None = None
    SHEET_URL: str | None = None
    SHEET_FORMAT: str = "csv"  # csv | gviz | html | auto
    SHEET_READY_STATUS: str = "ready"

    # Language / voice wiring
    DEFAULT_LANGS: str = "ar,en,fr,de,es,ru,sq"
    DEFAULT_VOICES_JSON: str = "{}"  # {"ar": {"voice": "onyx"}, "en": {"voice": "alloy"}}

    # AWS / S3 (optional asset storage)
    AWS_REGION: str | None = None
    S3_BUCKET: str | None = None
    S3_OUTPUT_PREFIX: str = "outputs/"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @property
    def languages(self) -> List[str]:
        return [s.strip() for s in self.DEFAULT_LANGS.split(",") if s.strip()]

    @property
    def voices(self) -> Dict[str, Dict]:
        try:
            data = json.loads(self.DEFAULT_VOICES_JSON or "{}")
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    @property
    def default_language(self) -> str:
        langs = self.languages
        return langs[0] if langs else "en"

    def voice_for(self, language: str) -> str:
        entry = self.voices.get(language) or {}
        if isinstance(entry, str):
            return entry
        return str(entry.get("voice") or "")

settings = Settings()
