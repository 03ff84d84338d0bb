"""Drive relay failures.

Each error carries the HTTP status and plain-text body the relay answers with.
"""


class DriveRelayError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def body(self) -> str:
        return f"Proxy error: {self.message}"


class MissingDriveLink(DriveRelayError):
    status_code = 400

    def __init__(self):
        super().__init__("Missing Google Drive link")

    @property
    def body(self) -> str:
        return self.message


class InvalidDriveLink(DriveRelayError):
    status_code = 400

    def __init__(self, link: str = ""):
        super().__init__("Invalid Google Drive link")
        self.link = link

    @property
    def body(self) -> str:
        return self.message


class UpstreamError(DriveRelayError):
    """Drive answered with a non-success status; relayed to the caller verbatim."""

    def __init__(self, status_code: int, content: bytes, content_type: str | None = None):
        super().__init__(f"Upstream responded with {status_code}")
        self.status_code = status_code
        self.content = content
        self.content_type = content_type

    @property
    def body(self) -> str:
        return self.content.decode("utf-8", errors="replace")
