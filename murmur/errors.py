"""Error taxonomy shared by providers, routers and controllers."""

from __future__ import annotations

from enum import Enum


class MurmurError(Exception):
    """Base class for errors whose message is shown to the user."""


class ConfigurationError(MurmurError):
    """A provider that needs an API key has none configured."""

    def __init__(self, provider_id: str, message: str | None = None) -> None:
        self.provider_id = provider_id
        super().__init__(
            message or f"No API key configured for {provider_id}. Open settings to add one."
        )


class ProviderErrorKind(str, Enum):
    UNAUTHORIZED = "unauthorized"
    NETWORK = "network"
    RATE_LIMITED = "rateLimited"
    UNSUPPORTED_MODEL = "unsupportedModel"
    REQUEST_REJECTED = "requestRejected"
    SETUP_FAILED = "setupFailed"
    PROCESS_FAILED = "processFailed"
    UNKNOWN_PROVIDER = "unknownProvider"


class ProviderError(MurmurError):
    """A transcription or text-generation backend failed."""

    def __init__(
        self,
        kind: ProviderErrorKind,
        message: str,
        provider_id: str | None = None,
    ) -> None:
        self.kind = kind
        self.provider_id = provider_id
        super().__init__(message)


class CaptureError(MurmurError):
    """The capture surface produced no audio or the device failed."""


class CaptureTimeoutError(CaptureError):
    def __init__(self, timeout_s: float) -> None:
        self.timeout_s = timeout_s
        super().__init__(f"Audio capture timed out after {timeout_s:g}s")


class PasteError(MurmurError):
    """OS input simulation failed; the text stays on the clipboard."""

    SIMULATION_FAILED = "simulationFailed"

    def __init__(self, message: str, kind: str = SIMULATION_FAILED) -> None:
        self.kind = kind
        super().__init__(message)


class RecordingCancelledError(MurmurError):
    """The user cancelled the recording. Never reported as a failure."""

    def __init__(self) -> None:
        super().__init__("Recording cancelled")
