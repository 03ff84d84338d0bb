import logging
import uuid
from dataclasses import dataclass

from app.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass
class MediaBlob:
    data: bytes
    media_type: str


class MediaStore:
    """
    In-memory registry of playable and cover payloads.
    Every reference handed out by create() must be given back to revoke() exactly once.
    """

    def __init__(self, url_prefix: str | None = None):
        self.url_prefix = (url_prefix or settings.MEDIA_URL_PREFIX).rstrip("/")
        self._blobs: dict[str, MediaBlob] = {}

    def create(self, data: bytes, media_type: str | None = None) -> str:
        ref = uuid.uuid4().hex
        self._blobs[ref] = MediaBlob(data=bytes(data), media_type=media_type or "application/octet-stream")
        return f"{self.url_prefix}/{ref}"

    def ref_from_url(self, url: str) -> str:
        return url.rsplit("/", 1)[-1]

    def get(self, ref: str) -> MediaBlob | None:
        return self._blobs.get(ref)

    def revoke(self, url: str) -> bool:
        ref = self.ref_from_url(url)
        if self._blobs.pop(ref, None) is None:
            logger.warning(f"Media reference already released: {url}")
            return False
        return True

    def clear(self):
        self._blobs.clear()

    def __contains__(self, url: str) -> bool:
        return self.ref_from_url(url) in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)
