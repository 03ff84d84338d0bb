import math
import time
from enum import Enum

from pydantic import BaseModel, Field, computed_field


def format_time(seconds: float | None) -> str:
    if seconds is None or math.isnan(seconds):
        return "0:00"
    m = int(seconds // 60)
    s = int(seconds % 60)
    return f"{m}:{s:02d}"


class SourceFile(BaseModel):
    """An audio item handed to the player before its metadata is resolved."""
    name: str
    size: int
    last_modified: int = Field(default_factory=lambda: int(time.time() * 1000))
    media_type: str = ""
    data: bytes = Field(default=b"", repr=False, exclude=True)

    @property
    def key(self) -> tuple[str, int, int]:
        return (self.name, self.size, self.last_modified)


class TrackRecord(BaseModel):
    id: str
    url: str
    name: str
    size: int
    last_modified: int
    title: str
    artist: str | None = None
    album: str | None = None
    year: str | int | None = None
    cover_url: str | None = None
    media_type: str = ""
    duration: float | None = None

    @property
    def key(self) -> tuple[str, int, int]:
        return (self.name, self.size, self.last_modified)


class PlaybackStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    PAUSED = "paused"
    PLAYING = "playing"
    ENDED = "ended"


class IngestResult(BaseModel):
    added: list[TrackRecord] = []
    duplicates: list[str] = []

    @computed_field
    @property
    def warning(self) -> str | None:
        if not self.duplicates:
            return None
        return (
            "The following file(s) already exist in your playlist and were not added again:\n"
            + "\n".join(self.duplicates)
        )


class EngineCommand(BaseModel):
    command: str  # load, unload, play, pause, seek, volume
    src: str | None = None
    value: float | None = None


class PlayerState(BaseModel):
    status: PlaybackStatus
    current: TrackRecord | None = None
    playing: bool = False
    volume: float = 1.0
    progress: float = 0.0
    duration: float = 0.0
    progress_label: str = "0:00"
    duration_label: str = "0:00"
    tracks: list[TrackRecord] = []
    duplicate_warning: list[str] = []


class DriveLinkRequest(BaseModel):
    link: str | None = None


class SeekRequest(BaseModel):
    seconds: float


class VolumeRequest(BaseModel):
    volume: float


class EngineEvent(BaseModel):
    type: str  # timeupdate, loadedmetadata, ended
    current_time: float | None = None
    duration: float | None = None

