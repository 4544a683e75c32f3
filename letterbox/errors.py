"""Exception types raised by letterbox."""


class LetterboxError(Exception):
    """Base class for letterbox errors."""


class ButtondownError(LetterboxError):
    """Non-retryable error response from the Buttondown API."""

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(f"API error {status_code}: {body}")


class ImageDownloadError(LetterboxError):
    """An embedded image could not be fetched or was not an image."""
