import contextlib
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

import anyio
import httpx

from app.core.errors import DriveRelayError, InvalidDriveLink, MissingDriveLink, UpstreamError
from app.core.settings import settings

logger = logging.getLogger(__name__)

DRIVE_ID_PATTERNS = (
    re.compile(r"/d/([a-zA-Z0-9_-]{25,})"),  # .../d/FILEID/...
    re.compile(r"id=([a-zA-Z0-9_-]{25,})"),  # ...id=FILEID
    re.compile(r"file/d/([a-zA-Z0-9_-]{25,})"),  # ...file/d/FILEID/...
)
DISPOSITION_FILENAME = re.compile(r'filename="(.+)"')
DEFAULT_CONTENT_TYPE = "audio/mpeg"


def extract_drive_file_id(url: str) -> str | None:
    for pattern in DRIVE_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def filename_from_disposition(disposition: str | None, file_id: str) -> str:
    if disposition:
        match = DISPOSITION_FILENAME.search(disposition)
        if match:
            return match.group(1)
    return f"drivefile_{file_id}.mp3"


def _unlink(path: Path):
    with contextlib.suppress(FileNotFoundError):
        os.unlink(path)


@dataclass
class DriveDownload:
    """A Drive file staged in a per-request temporary file."""
    file_id: str
    path: Path
    filename: str
    content_type: str
    size: int
    chunk_size: int = 64 * 1024

    @property
    def content_disposition(self) -> str:
        return f'attachment; filename="{self.filename}"'

    async def iter_bytes(self):
        """Streams the staged file and removes it once the stream closes, even on disconnect."""
        try:
            async with await anyio.open_file(self.path, "rb") as f:
                while chunk := await f.read(self.chunk_size):
                    yield chunk
        finally:
            _unlink(self.path)
            logger.debug(f"Removed staged download {self.path}")

    async def read(self) -> bytes:
        try:
            return await anyio.Path(self.path).read_bytes()
        finally:
            _unlink(self.path)

    def discard(self):
        _unlink(self.path)


class DriveRelay:
    def __init__(
        self,
        base_url: str | None = None,
        temp_dir: Path | None = None,
        timeout: float | None = None,
        chunk_size: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url or settings.DRIVE_DOWNLOAD_URL
        self.temp_dir = temp_dir if temp_dir is not None else settings.TEMP_DIR
        self.timeout = timeout or settings.DRIVE_TIMEOUT
        self.chunk_size = chunk_size or settings.STREAM_CHUNK_SIZE
        self.transport = transport

    def resolve_file_id(self, link: str | None) -> str:
        if not link:
            raise MissingDriveLink()
        file_id = extract_drive_file_id(link)
        if not file_id:
            raise InvalidDriveLink(link)
        return file_id

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            follow_redirects=True,
            timeout=self.timeout,
            transport=self.transport,
        )

    async def download(self, link: str | None) -> DriveDownload:
        """
        Fetches the Drive file behind a share link into a temporary file.
        Non-success upstream responses are raised as UpstreamError for verbatim relay.
        """
        file_id = self.resolve_file_id(link)
        params = {"export": "download", "id": file_id}

        try:
            async with self._client() as client:
                async with client.stream("GET", self.base_url, params=params) as response:
                    if not response.is_success:
                        content = await response.aread()
                        logger.warning(f"Drive responded {response.status_code} for {file_id}")
                        raise UpstreamError(
                            response.status_code,
                            content,
                            response.headers.get("content-type"),
                        )

                    filename = filename_from_disposition(
                        response.headers.get("content-disposition"), file_id
                    )
                    content_type = response.headers.get("content-type") or DEFAULT_CONTENT_TYPE
                    path, size = await self._stage(response)
        except DriveRelayError:
            raise
        except httpx.HTTPError as e:
            logger.error(f"Drive download failed for {file_id}: {e}")
            raise DriveRelayError(str(e) or type(e).__name__) from e

        logger.info(f"Staged Drive file {file_id} as {filename} ({size} bytes)")
        return DriveDownload(
            file_id=file_id,
            path=path,
            filename=filename,
            content_type=content_type,
            size=size,
            chunk_size=self.chunk_size,
        )

    async def _stage(self, response: httpx.Response) -> tuple[Path, int]:
        fd, name = tempfile.mkstemp(prefix="drivefile_", dir=self.temp_dir)
        os.close(fd)
        path = Path(name)
        size = 0
        try:
            async with await anyio.open_file(path, "wb") as f:
                async for chunk in response.aiter_bytes(self.chunk_size):
                    await f.write(chunk)
                    size += len(chunk)
        except BaseException:
            _unlink(path)
            raise
        return path, size

    async def check_connectivity(self) -> dict:
        try:
            async with self._client() as client:
                resp = await client.get("https://drive.google.com", timeout=5.0)
            if resp.status_code in [200, 301, 302]:
                return {"status": "online", "message": "Connected to Google Drive"}
            return {"status": "offline", "message": f"Status Code: {resp.status_code}"}
        except Exception as e:
            return {"status": "offline", "message": str(e)}
