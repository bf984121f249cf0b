"""Error taxonomy for CI-SNAPSHOT.

Every failure that aborts a snapshot run derives from SnapshotError so the CLI
can report it with a single diagnostic:

- TransportError: network failure, timeout after retries, or a status code
  outside the accepted set
- AuthError: token exchange failed
- DecodeError: upstream returned a body that is not the expected JSON
- PersistError: a snapshot file or its directory could not be written
"""


class SnapshotError(Exception):
    """Base exception for all snapshot run failures."""


class TransportError(SnapshotError):
    """HTTP request failed at the network level or returned a rejected status.

    Args:
        message: Human-readable description
        url: Requested URL
        status_code: HTTP status, None for network-level failures
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class AuthError(SnapshotError):
    """Client credentials could not be exchanged for a bearer token."""


class DecodeError(SnapshotError):
    """Response body could not be decoded into the expected shape.

    Args:
        message: Human-readable description
        body: Raw response body, kept for diagnostics
    """

    def __init__(self, message: str, body: bytes = b"") -> None:
        super().__init__(message)
        self.body = body


class PersistError(SnapshotError):
    """A snapshot file could not be written to disk."""
