"""Error taxonomy for NahCloud API calls.

Errors fall into four categories:
- TransportError: no HTTP response was received
- APIError: the service answered with a status >= 400
- EncodingError: the outgoing payload could not be built
- DecodingError: a success response could not be parsed
"""

from typing import Optional

# Raw bodies larger than this are cut down in messages (the full body stays on .body)
MAX_BODY_IN_MESSAGE = 2048


class NahCloudError(Exception):
    """Base class for every error raised by the NahCloud client."""


class TransportError(NahCloudError):
    """The request could not reach the service or no response arrived."""

    def __init__(self, message: str, method: str = "", path: str = ""):
        super().__init__(message)
        self.method = method
        self.path = path


class RequestTimeoutError(TransportError):
    """The per-request timeout elapsed before a response arrived."""


class RequestCancelledError(TransportError):
    """The caller cancelled the request through its CallContext."""


class DeadlineExceededError(RequestCancelledError):
    """The CallContext deadline passed before a response arrived."""


class APIError(NahCloudError):
    """The service rejected the request with a status code >= 400.

    The body is kept verbatim: its format is not guaranteed, so no
    attempt is made to parse error codes out of it.
    """

    def __init__(
        self,
        status_code: int,
        body: str,
        method: str = "",
        path: str = "",
    ):
        self.status_code = status_code
        self.body = body
        self.method = method
        self.path = path
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        body = self.body
        if len(body) > MAX_BODY_IN_MESSAGE:
            body = body[: MAX_BODY_IN_MESSAGE - 3] + "..."
        prefix = f"API error (status {self.status_code})"
        if self.method and self.path:
            prefix = f"{prefix} on {self.method} {self.path}"
        return f"{prefix}: {body}"

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404


class EncodingError(NahCloudError, ValueError):
    """The request payload is malformed or could not be serialized."""


class DecodingError(NahCloudError):
    """A success response carried a body that could not be decoded."""

    def __init__(self, message: str, body: Optional[str] = None):
        super().__init__(message)
        self.body = body
