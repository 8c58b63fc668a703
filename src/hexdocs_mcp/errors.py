"""Exceptions raised while mirroring and enriching upstream documentation."""


class HexdocsError(Exception):
    """Base exception carrying a human-readable message and structured details."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict = details or {}


class UpstreamFetchFailed(HexdocsError):
    """A required upstream retrieval returned a non-success status.

    ``status`` is None when the request never produced a response
    (connection refused, DNS failure, timeout).
    """

    def __init__(
        self,
        message: str,
        attempted: str,
        status: int | None,
        fallback: str | None = None,
        fallback_status: int | None = None,
    ) -> None:
        super().__init__(
            message,
            {
                "attempted": attempted,
                "status": status,
                "fallback": fallback,
                "fallback_status": fallback_status,
            },
        )
        self.attempted = attempted
        self.status = status
        self.fallback = fallback
        self.fallback_status = fallback_status


class SidebarParseFailed(HexdocsError):
    """The sidebar payload was present but not a ``sidebarNodes=<JSON>`` envelope."""

    def __init__(self, message: str, url: str | None = None) -> None:
        super().__init__(message, {"url": url})
        self.url = url
