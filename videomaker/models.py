from sqlmodel import SQLModel, Field
from typing import Optional, Dict, Any
from datetime import datetime, timezone

QUEUED = "queued"
RUNNING = "running"
DONE = "done"
FAILED = "failed"
CANCELED = "canceled"

STATUSES = (QUEUED, RUNNING, DONE, FAILED, CANCELED)
TERMINAL = (DONE, FAILED, CANCELED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Job(SQLModel):
    id: str
    type: str = "video_generate"
    status: str = QUEUED  # queued|running|done|failed|canceled
    prompt: str = ""
    title: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)
    progress: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL

    def touch(self) -> None:
        self.updated_at = utcnow()


class SheetRow(SQLModel):
    row: int  # 1-based row number in the sheet (header is row 1)
    title: str = ""
    prompt: str = ""
    language: str = ""
    voice: str = ""
    status: str = ""
    raw: Dict[str, str] = Field(default_factory=dict)


# ----- Request bodies -----
class GenerateVideoRequest(SQLModel):
    prompt: str = ""
    title: Optional[str] = None
    meta: Dict[str, Any] = Field(default_factory=dict)


class ImageRequest(SQLModel):
    prompt: str = ""
    negative_prompt: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    steps: Optional[int] = None
    cfg_scale: Optional[float] = None
    samples: Optional[int] = None
    seed: Optional[int] = None
    style_preset: Optional[str] = None


class TTSRequest(SQLModel):
    text: str = ""
    language: Optional[str] = None
    voice: Optional[str] = None
    format: str = "mp3"
    speed: Optional[float] = None
    store: bool = False


class LogEvent(SQLModel):
    type: str = "event"
    message: str = ""
    meta: Dict[str, Any] = Field(default_factory=dict)


class FailRequest(SQLModel):
    error: str = "failed by admin"
