"""
Error types raised by the dubbing pipeline and its collaborators.
"""


class VideodubError(Exception):
    """Base class for all videodub errors."""


class ConfigurationError(VideodubError):
    """A required capability is missing its credential or is not configured."""


class ProviderError(VideodubError):
    """An external capability provider failed or returned an unusable payload."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        self.provider = provider
        self.message = message
        self.status_code = status_code
        super().__init__(f"[{provider}] {message}")


class ProviderNotConfigured(ConfigurationError, ProviderError):
    """Provider call attempted without a credential."""

    def __init__(self, provider: str, message: str | None = None):
        ProviderError.__init__(self, provider, message or f"{provider} API key not configured")


class MediaToolError(VideodubError):
    """An ffmpeg/ffprobe/yt-dlp invocation failed or produced no output."""


class UnsupportedPlatformError(MediaToolError):
    """Download requested for a platform the adapter cannot fetch from."""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"Platform {platform} download not yet supported")


class InvalidTransitionError(VideodubError, ValueError):
    """A record update would break the status/progress invariants."""


class NotFoundError(VideodubError, KeyError):
    """No record exists for the requested ID."""

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")

    def __str__(self) -> str:
        return f"{self.kind} {self.record_id} not found"
