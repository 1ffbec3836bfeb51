"""Error kinds raised across yt-chill and the hints shown for them."""

from typing import Optional


class YtChillError(Exception):
    """Base class for every error yt-chill reports to the user."""


class NetworkError(YtChillError):
    """Raised when a page cannot be fetched (timeout, non-2xx, connection)."""

    def __init__(self, message: str, url: Optional[str] = None, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status = status


class ExtractionError(YtChillError):
    """Raised when a fetched page cannot be turned into video records."""


class MarkerNotFound(ExtractionError):
    """The bootstrap JSON marker is missing from the page."""


class UnterminatedStructure(ExtractionError):
    """The bootstrap JSON object never closes."""


class MalformedPayload(ExtractionError):
    """The delimited bootstrap JSON does not parse."""


class SchemaMismatch(ExtractionError):
    """None of the known result paths lead to a list of items."""


class CacheIOError(YtChillError):
    """A cache entry could not be written. Never fatal."""


class ExternalToolMissing(YtChillError):
    """A required executable is not installed."""

    def __init__(self, tool: str) -> None:
        super().__init__(f"Missing dependency: {tool}. Please install it.")
        self.tool = tool


class ExternalToolFailed(YtChillError):
    """An external process could not start or exited unsuccessfully."""

    def __init__(
        self,
        tool: str,
        returncode: Optional[int] = None,
        stderr: str = "",
        started: bool = True,
    ) -> None:
        if started:
            message = f"{tool} exited with code {returncode}"
        else:
            message = f"Failed to start {tool}"
        super().__init__(message)
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr
        self.started = started


def describe_error(exc: BaseException) -> str:
    """Return a short remediation hint for *exc*, or an empty string."""

    if isinstance(exc, NetworkError):
        if exc.status == 429:
            return "YouTube is rate limiting this address. Wait a few minutes and try again."
        if exc.status is not None:
            return "YouTube answered with an error page. Try again later."
        return "Check your internet connection and try again."
    if isinstance(exc, MarkerNotFound):
        return (
            "The page did not contain any video data. This usually means a consent "
            "wall or a CAPTCHA was served instead of results."
        )
    if isinstance(exc, (UnterminatedStructure, MalformedPayload, SchemaMismatch)):
        return "YouTube changed its page layout. Updating yt-chill may fix this."
    if isinstance(exc, ExternalToolMissing):
        return f"Install '{exc.tool}' and make sure it is on your PATH."
    if isinstance(exc, ExternalToolFailed):
        if not exc.started:
            return f"Check that '{exc.tool}' runs from your shell."
        return ""
    return ""
