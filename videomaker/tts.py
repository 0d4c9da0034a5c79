"""
Text-to-speech via the OpenAI audio API.
Voice resolution: explicit voice -> per-language default -> OPENAI_TTS_VOICE.
"""

from typing import Dict, Optional, Tuple

import requests

from videomaker.errors import MissingCredentials, UpstreamError
from videomaker.settings import Settings, settings as default_settings

MAX_TTS_CHARS = 4096
MIN_SPEED = 0.25
MAX_SPEED = 4.0

CONTENT_TYPES = {
    "mp3": "audio/mpeg",
    "opus": "audio/ogg",
    "aac": "audio/aac",
    "flac": "audio/flac",
    "wav": "audio/wav",
}

OPENAI_VOICES = ("alloy", "echo", "fable", "onyx", "nova", "shimmer")


def clamp_speed(speed: Optional[float]) -> float:
    if speed is None:
        return 1.0
    return max(MIN_SPEED, min(MAX_SPEED, float(speed)))


def normalize_format(fmt: Optional[str]) -> str:
    fmt = (fmt or "mp3").lower().lstrip(".")
    return fmt if fmt in CONTENT_TYPES else "mp3"


def resolve_voice(voice: Optional[str], language: Optional[str], cfg: Settings) -> str:
    if voice and voice.strip():
        return voice.strip()
    lang = (language or cfg.default_language).strip()
    return cfg.voice_for(lang) or cfg.OPENAI_TTS_VOICE


class OpenAISpeech:
    def __init__(self, api_key: str, *, base_url: str, model: str, timeout: float = 120.0):
        self.session = requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {api_key}"})
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout

    def synthesize(self, text: str, *, voice: str, fmt: str = "mp3", speed: float = 1.0) -> bytes:
        payload = {
            "model": self.model,
            "input": text,
            "voice": voice,
            "response_format": fmt,
            "speed": speed,
        }
        try:
            r = self.session.post(f"{self.base_url}/audio/speech", json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise UpstreamError(f"TTS request failed: {e}", service="openai")
        if not r.ok:
            raise UpstreamError(
                f"TTS failed: HTTP {r.status_code}",
                status_code=r.status_code,
                body=_body(r),
                service="openai",
            )
        return r.content


def _body(r: requests.Response):
    try:
        return r.json()
    except ValueError:
        return r.text[:2000]


def synthesize_speech(
    text: str,
    *,
    language: Optional[str] = None,
    voice: Optional[str] = None,
    fmt: Optional[str] = None,
    speed: Optional[float] = None,
    cfg: Optional[Settings] = None,
) -> Tuple[bytes, Dict]:
    """
    Returns (audio bytes, info). Raises ValueError on empty text (never calls
    upstream), MissingCredentials without an API key, UpstreamError otherwise.
    """
    cfg = cfg or default_settings
    text = (text or "").strip()
    if not text:
        raise ValueError("TEXT_REQUIRED")
    if not cfg.OPENAI_API_KEY:
        raise MissingCredentials("OPENAI_API_KEY")

    fmt = normalize_format(fmt)
    info = {
        "language": (language or cfg.default_language),
        "voice": resolve_voice(voice, language, cfg),
        "format": fmt,
        "content_type": CONTENT_TYPES[fmt],
        "speed": clamp_speed(speed),
        "truncated": len(text) > MAX_TTS_CHARS,
        "model": cfg.OPENAI_TTS_MODEL,
    }
    client = OpenAISpeech(
        cfg.OPENAI_API_KEY,
        base_url=cfg.OPENAI_API_BASE,
        model=cfg.OPENAI_TTS_MODEL,
        timeout=cfg.UPSTREAM_TIMEOUT,
    )
    audio = client.synthesize(text[:MAX_TTS_CHARS], voice=info["voice"], fmt=fmt, speed=info["speed"])
    return audio, info


def list_voices(cfg: Optional[Settings] = None) -> Dict:
    cfg = cfg or default_settings
    return {
        "default": cfg.OPENAI_TTS_VOICE,
        "available": list(OPENAI_VOICES),
        "by_language": cfg.voices,
    }
