"""Shared fixtures: media store, resolver, a scriptable engine and audio payloads."""

from __future__ import annotations

import io
import wave

import pytest
from mutagen.id3 import APIC, TALB, TDRC, TIT2, TPE1
from mutagen.wave import WAVE

from app.domain.models import SourceFile
from app.services.engine import ENDED, LOADED_METADATA, TIME_UPDATE, EngineEvents
from app.services.media_store import MediaStore
from app.services.metadata import MetadataResolver, TagSet
from app.services.player import PlaybackController

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class FakeEngine(EngineEvents):
    """Records transport calls and lets tests fire media events."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple] = []
        self.src: str | None = None

    def load(self, src):
        self.src = src
        self.calls.append(("load", src))

    def play(self):
        self.calls.append(("play",))

    def pause(self):
        self.calls.append(("pause",))

    def seek(self, seconds):
        self.calls.append(("seek", seconds))

    def set_volume(self, volume):
        self.calls.append(("volume", volume))

    def loaded(self, duration: float) -> None:
        self.emit(LOADED_METADATA, duration)

    def tick(self, current_time: float) -> None:
        self.emit(TIME_UPDATE, current_time)

    def finish(self) -> None:
        self.emit(ENDED)

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)


def make_wav(seconds: float = 0.1, rate: int = 8000) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(rate)
        w.writeframes(b"\x00\x00" * int(rate * seconds))
    return buf.getvalue()


def make_tagged_wav(title=None, artist=None, album=None, year=None, picture=None) -> bytes:
    buf = io.BytesIO(make_wav())
    audio = WAVE(buf)
    audio.add_tags()
    if title:
        audio.tags.add(TIT2(encoding=3, text=[title]))
    if artist:
        audio.tags.add(TPE1(encoding=3, text=[artist]))
    if album:
        audio.tags.add(TALB(encoding=3, text=[album]))
    if year:
        audio.tags.add(TDRC(encoding=3, text=[year]))
    if picture:
        data, mime = picture
        audio.tags.add(APIC(encoding=3, mime=mime, type=3, desc="Cover", data=data))
    audio.save(buf)
    return buf.getvalue()


def make_file(name: str, data: bytes = b"not really audio", last_modified: int = 1_700_000_000_000,
              media_type: str = "") -> SourceFile:
    return SourceFile(name=name, size=len(data), last_modified=last_modified, media_type=media_type, data=data)


@pytest.fixture
def store() -> MediaStore:
    return MediaStore(url_prefix="/api/v1/media")


@pytest.fixture
def resolver(store) -> MetadataResolver:
    return MetadataResolver(store)


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def controller(store, engine) -> PlaybackController:
    # Tags are not under test here; every file resolves from its name
    def no_tags(_data: bytes) -> TagSet:
        raise ValueError("no tags")

    return PlaybackController(MetadataResolver(store, tag_reader=no_tags), engine)
