import base64
import io
import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import PurePosixPath

import mutagen
from mutagen.flac import Picture
from mutagen.id3 import ID3
from mutagen.mp4 import MP4Cover, MP4Tags

from app.core.settings import settings
from app.domain.models import SourceFile, TrackRecord
from app.services.media_store import MediaStore

logger = logging.getLogger(__name__)


class TagParseError(Exception):
    pass


@dataclass
class EmbeddedPicture:
    data: bytes
    mime: str = "image/jpeg"


@dataclass
class TagSet:
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    year: str | int | None = None
    duration: float | None = None
    pictures: list[EmbeddedPicture] = field(default_factory=list)


def parse_filename(filename: str) -> tuple[str | None, str]:
    """
    Splits "Artist - Title.ext" into (artist, title).
    Without the " - " separator, or with nothing after it, the artist is None and
    the whole stem is the title.
    """
    name = PurePosixPath(filename).name
    stem, dot, _ext = name.rpartition(".")
    if not dot or not stem:
        stem = name
    if " - " in stem:
        artist, title = stem.split(" - ", 1)
        if title.strip():
            return artist, title
    return None, stem or "Unknown Title"


def _first(value) -> str | None:
    if value is None:
        return None
    if hasattr(value, "text"):  # ID3 text frame
        value = value.text
    if isinstance(value, (list, tuple)):
        if not value:
            return None
        value = value[0]
    text = str(value).strip()
    return text or None


def _year(value: str | None) -> str | int | None:
    if not value:
        return None
    # "2021-01-01" -> 2021
    if value[:4].isdigit():
        return int(value[:4])
    return value


def _mp4_cover_mime(cover: MP4Cover) -> str:
    if getattr(cover, "imageformat", None) == MP4Cover.FORMAT_PNG:
        return "image/png"
    return "image/jpeg"


def read_tags(data: bytes) -> TagSet:
    """
    Parses embedded tags from raw audio bytes with mutagen.
    Raises TagParseError when the stream is not a recognised audio container.
    """
    try:
        audio = mutagen.File(io.BytesIO(data))
    except mutagen.MutagenError as e:
        raise TagParseError(str(e)) from e
    if audio is None:
        raise TagParseError("Unrecognised audio format")

    tag_set = TagSet()
    if audio.info is not None:
        tag_set.duration = getattr(audio.info, "length", None)

    tags = audio.tags
    if isinstance(tags, ID3):
        tag_set.title = _first(tags.get("TIT2"))
        tag_set.artist = _first(tags.get("TPE1"))
        tag_set.album = _first(tags.get("TALB"))
        tag_set.year = _year(_first(tags.get("TDRC")) or _first(tags.get("TYER")))
        tag_set.pictures = [
            EmbeddedPicture(data=frame.data, mime=frame.mime or "image/jpeg")
            for frame in tags.getall("APIC")
        ]
    elif isinstance(tags, MP4Tags):
        tag_set.title = _first(tags.get("\xa9nam"))
        tag_set.artist = _first(tags.get("\xa9ART"))
        tag_set.album = _first(tags.get("\xa9alb"))
        tag_set.year = _year(_first(tags.get("\xa9day")))
        tag_set.pictures = [
            EmbeddedPicture(data=bytes(cover), mime=_mp4_cover_mime(cover))
            for cover in tags.get("covr", [])
        ]
    elif tags is not None:
        # Vorbis comments (FLAC, Ogg, Opus) and APEv2 are case-insensitive mappings
        tag_set.title = _first(tags.get("title"))
        tag_set.artist = _first(tags.get("artist"))
        tag_set.album = _first(tags.get("album"))
        tag_set.year = _year(_first(tags.get("date")) or _first(tags.get("year")))

        for pic in getattr(audio, "pictures", None) or []:
            tag_set.pictures.append(EmbeddedPicture(data=pic.data, mime=pic.mime or "image/jpeg"))
        for encoded in tags.get("metadata_block_picture", None) or []:
            try:
                pic = Picture(base64.b64decode(encoded))
            except Exception as e:
                logger.debug(f"Skipping unreadable embedded picture: {e}")
                continue
            tag_set.pictures.append(EmbeddedPicture(data=pic.data, mime=pic.mime or "image/jpeg"))

    return tag_set


class MetadataResolver:
    def __init__(self, store: MediaStore, tag_reader=read_tags):
        self.store = store
        self.tag_reader = tag_reader

    def resolve(self, data: bytes, filename: str, media_type: str = "") -> TrackRecord:
        """
        Builds a TrackRecord from raw bytes. Never raises on bad tags:
        falls back to the filename for title/artist and drops the cover.
        """
        try:
            tags = self.tag_reader(data)
        except Exception as e:
            logger.debug(f"Tag parsing failed for {filename}: {e}")
            artist, title = parse_filename(filename)
            return self._track(data, filename, media_type, title=title, artist=artist)

        logger.debug(f"Parsed tags for {filename}: {tags}")
        fallback_artist, fallback_title = parse_filename(filename)
        cover_url = None
        if tags.pictures:
            try:
                cover_url = self._create_cover(tags.pictures[0])
            except Exception as e:
                logger.warning(f"Couldn't build cover image for {filename}: {e}")

        return self._track(
            data,
            filename,
            media_type,
            title=tags.title or fallback_title,
            artist=tags.artist or fallback_artist,
            album=tags.album or settings.UNKNOWN_ALBUM,
            year=tags.year or settings.UNKNOWN_YEAR,
            cover_url=cover_url,
            duration=tags.duration,
        )

    def resolve_file(self, file: SourceFile) -> TrackRecord:
        track = self.resolve(file.data, file.name, file.media_type)
        # Keep the source identity for duplicate checks
        track.name = file.name
        track.size = file.size
        track.last_modified = file.last_modified
        return track

    def _create_cover(self, picture: EmbeddedPicture) -> str:
        if not picture.data:
            raise ValueError("Embedded picture has no data")
        mime = picture.mime
        if mime and "/" not in mime:
            # ID3v2.2 PIC frames carry a bare format like "JPG"
            mime = f"image/{mime.lower()}"
        if not mime.startswith("image/"):
            raise ValueError(f"Unsupported picture type {picture.mime!r}")
        return self.store.create(picture.data, mime)

    def _track(self, data: bytes, filename: str, media_type: str, **fields) -> TrackRecord:
        url = self.store.create(data, media_type or "audio/mpeg")
        return TrackRecord(
            id=uuid.uuid4().hex,
            url=url,
            name=filename,
            size=len(data),
            last_modified=int(time.time() * 1000),
            media_type=media_type,
            **fields,
        )
