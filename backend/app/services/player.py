import logging
import math
from collections.abc import Iterable

from app.domain.models import (
    IngestResult,
    PlaybackStatus,
    PlayerState,
    SourceFile,
    TrackRecord,
    format_time,
)
from app.services.engine import ENDED, LOADED_METADATA, TIME_UPDATE, MediaEngine, QueuedEngine
from app.services.metadata import MetadataResolver

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = (".mp3", ".wav", ".ogg", ".flac", ".aac", ".m4a", ".opus", ".webm")


def is_audio(file: SourceFile) -> bool:
    if file.media_type and file.media_type.startswith("audio/"):
        return True
    return file.name.lower().endswith(AUDIO_EXTENSIONS)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class PlaybackController:
    """
    Owns the playlist and the current track, and drives a MediaEngine.

    Every mutation goes through the methods below. Engine events arrive through
    on_time_update / on_loaded_metadata / on_ended.
    """

    def __init__(self, resolver: MetadataResolver, engine: MediaEngine | None = None):
        self.resolver = resolver
        self.store = resolver.store
        self.engine = engine if engine is not None else QueuedEngine()

        self.tracks: list[TrackRecord] = []
        self.current: TrackRecord | None = None
        self.playing = False
        self.volume = 1.0
        self.progress = 0.0
        self.duration = 0.0
        self.autoplay = False
        self.duplicate_warning: list[str] = []
        self._loaded = False
        self._ended = False

        self.engine.subscribe(TIME_UPDATE, self.on_time_update)
        self.engine.subscribe(LOADED_METADATA, self.on_loaded_metadata)
        self.engine.subscribe(ENDED, self.on_ended)

    # Playlist

    def ingest(self, files: Iterable[SourceFile]) -> IngestResult:
        audio_files = [f for f in files if is_audio(f)]

        known = {t.key for t in self.tracks}
        unique: list[SourceFile] = []
        duplicates: list[str] = []
        for file in audio_files:
            if file.key in known:
                duplicates.append(file.name)
                continue
            known.add(file.key)
            unique.append(file)

        self.duplicate_warning = duplicates
        if duplicates:
            logger.info(f"Skipped {len(duplicates)} duplicate file(s): {', '.join(duplicates)}")

        added = [self.resolver.resolve_file(file) for file in unique]
        self.tracks.extend(added)
        for track in added:
            logger.debug(f"Added track {track.name}: {track.title!r} by {track.artist!r}")

        if self.current is None and added:
            self._load(added[0])
            logger.info(f"Current track set to {added[0].title!r}")

        return IngestResult(added=added, duplicates=duplicates)

    def add_file(self, file: SourceFile) -> TrackRecord:
        """Appends a single downloaded file. No duplicate check, the timestamp is fresh."""
        track = self.resolver.resolve_file(file)
        self.tracks.append(track)
        if self.current is None:
            self._load(track)
        return track

    def find(self, track_id: str) -> TrackRecord | None:
        return next((t for t in self.tracks if t.id == track_id), None)

    def index_of(self, track: TrackRecord) -> int:
        for idx, candidate in enumerate(self.tracks):
            if candidate is track:
                return idx
        return -1

    def remove(self, track: TrackRecord):
        idx = self.index_of(track)
        if idx < 0:
            raise ValueError(f"Track {track.id} is not in the playlist")
        self.tracks.pop(idx)
        if self.current is track:
            self._unload()
        self.release(track)

    def release(self, track: TrackRecord):
        self.store.revoke(track.url)
        if track.cover_url:
            self.store.revoke(track.cover_url)

    def release_all(self):
        for track in self.tracks:
            self.release(track)
        logger.info(f"Released {len(self.tracks)} track(s)")
        self.tracks = []
        self.duplicate_warning = []
        if self.current is not None:
            self._unload()

    # Transport

    def select_track(self, track: TrackRecord):
        self._load(track)
        self.autoplay = True

    def play_pause(self):
        if self.current is None:
            return
        if self.playing:
            self.engine.pause()
        else:
            self.engine.play()
            self._ended = False
        self.playing = not self.playing

    def seek(self, seconds: float):
        if self.current is None or math.isnan(seconds):
            return
        upper = self.duration if self.duration > 0 else max(seconds, 0.0)
        time = _clamp(seconds, 0.0, upper)
        self.engine.seek(time)
        self.progress = time

    def set_volume(self, volume: float):
        if math.isnan(volume):
            return
        self.volume = _clamp(volume, 0.0, 1.0)
        self.engine.set_volume(self.volume)

    def next(self):
        self._step(1)

    def prev(self):
        self._step(-1)

    def _step(self, offset: int):
        if self.current is None or not self.tracks:
            return
        idx = self.index_of(self.current)
        self.select_track(self.tracks[(idx + offset) % len(self.tracks)])

    # Engine callbacks

    def on_time_update(self, current_time: float):
        if self.current is None or current_time is None:
            return
        if self._loaded and self.duration > 0:
            self.progress = _clamp(current_time, 0.0, self.duration)
        else:
            self.progress = max(0.0, current_time)

    def on_loaded_metadata(self, duration: float):
        if self.current is None:
            return
        self.duration = 0.0 if duration is None or math.isnan(duration) else duration
        self.progress = 0.0
        self._loaded = True
        if self.autoplay:
            self.engine.play()
            self.playing = True
            self.autoplay = False

    def on_ended(self):
        self.playing = False
        self._ended = True

    # State

    @property
    def status(self) -> PlaybackStatus:
        if self.current is None:
            return PlaybackStatus.IDLE
        if not self._loaded:
            return PlaybackStatus.LOADING
        if self._ended:
            return PlaybackStatus.ENDED
        return PlaybackStatus.PLAYING if self.playing else PlaybackStatus.PAUSED

    def snapshot(self) -> PlayerState:
        return PlayerState(
            status=self.status,
            current=self.current,
            playing=self.playing,
            volume=self.volume,
            progress=self.progress,
            duration=self.duration,
            progress_label=format_time(self.progress),
            duration_label=format_time(self.duration),
            tracks=list(self.tracks),
            duplicate_warning=list(self.duplicate_warning),
        )

    def _load(self, track: TrackRecord):
        self.current = track
        self.playing = False
        self.progress = 0.0
        self.duration = 0.0
        self._loaded = False
        self._ended = False
        self.engine.load(track.url)

    def _unload(self):
        self.current = None
        self.playing = False
        self.autoplay = False
        self.progress = 0.0
        self.duration = 0.0
        self._loaded = False
        self._ended = False
        self.engine.load(None)
