"""Provider capability interfaces and the shared key lifecycle."""

from __future__ import annotations

import logging
from types import ModuleType
from typing import Any, ClassVar, Protocol, runtime_checkable

import httpx

from murmur.errors import ProviderError, ProviderErrorKind
from murmur.types import KeyValidation, Segment, TranscriptionResult

logger = logging.getLogger(__name__)

MAX_TOKENS = 4096
TEMPERATURE = 0.3
HTTP_TIMEOUT_SECONDS = 60.0


@runtime_checkable
class Transcriber(Protocol):
    async def transcribe(
        self, audio: bytes, model: str, language: str | None = None
    ) -> TranscriptionResult: ...


@runtime_checkable
class Completer(Protocol):
    async def complete(self, prompt: str, model: str) -> str: ...


@runtime_checkable
class JsonCompleter(Protocol):
    async def complete_json(self, prompt: str, model: str) -> str:
        """Request JSON-object output. The result is not guaranteed to parse."""
        ...


@runtime_checkable
class KeyValidator(Protocol):
    async def validate_key(self, candidate_key: str) -> KeyValidation: ...


class ProviderClient:
    """
    Base class for one transcription or text-generation backend.

    Keyed providers hold an authenticated client only while they have a
    non-empty API key. Without one they are "unconfigured" and every request
    fails fast with ``ProviderError(unauthorized)`` before touching the network.
    """

    provider_id: ClassVar[str]
    display_name: ClassVar[str]
    requires_key: ClassVar[bool] = True

    def __init__(self, api_key: str | None = None) -> None:
        self._client: Any = None
        self.update_api_key(api_key)

    @property
    def configured(self) -> bool:
        return not self.requires_key or self._client is not None

    def update_api_key(self, api_key: str | None) -> None:
        if not self.requires_key:
            return
        key = (api_key or "").strip()
        self._client = self._create_client(key) if key else None
        logger.debug("%s is %s", self.display_name, "configured" if key else "unconfigured")

    def key_format_warning(self, api_key: str) -> str | None:
        """Cheap local check of a candidate key. None means it looks plausible."""
        return None

    def _create_client(self, api_key: str) -> Any:
        raise NotImplementedError

    def _require_client(self) -> Any:
        if self._client is None:
            raise ProviderError(
                ProviderErrorKind.UNAUTHORIZED,
                f"{self.display_name} API key not configured",
                self.provider_id,
            )
        return self._client

    def _error(self, kind: ProviderErrorKind, detail: object) -> ProviderError:
        return ProviderError(kind, f"{self.display_name}: {detail}", self.provider_id)

    def __repr__(self) -> str:
        state = "configured" if self.configured else "unconfigured"
        return f"<{type(self).__name__} {self.provider_id} ({state})>"


def kind_for_status(status_code: int | None) -> ProviderErrorKind:
    if status_code in (401, 403):
        return ProviderErrorKind.UNAUTHORIZED
    if status_code == 429:
        return ProviderErrorKind.RATE_LIMITED
    if status_code == 404:
        return ProviderErrorKind.UNSUPPORTED_MODEL
    if status_code is None:
        return ProviderErrorKind.NETWORK
    return ProviderErrorKind.REQUEST_REJECTED


def translate_sdk_error(sdk: ModuleType, exc: Exception, provider: ProviderClient) -> ProviderError:
    """Map an exception from an OpenAI-style SDK (openai, groq, anthropic)."""
    if isinstance(exc, (sdk.AuthenticationError, sdk.PermissionDeniedError)):
        kind = ProviderErrorKind.UNAUTHORIZED
    elif isinstance(exc, sdk.RateLimitError):
        kind = ProviderErrorKind.RATE_LIMITED
    elif isinstance(exc, sdk.NotFoundError):
        kind = ProviderErrorKind.UNSUPPORTED_MODEL
    elif isinstance(exc, sdk.APIConnectionError):
        kind = ProviderErrorKind.NETWORK
    else:
        kind = ProviderErrorKind.REQUEST_REJECTED
    return provider._error(kind, getattr(exc, "message", None) or exc)


def check_response(response: httpx.Response, provider: ProviderClient) -> Any:
    """Raise a ProviderError for an HTTP error response, else return its JSON."""
    if response.is_error:
        raise provider._error(
            kind_for_status(response.status_code),
            f"HTTP {response.status_code}: {response.text[:200]}",
        )
    try:
        return response.json()
    except ValueError as exc:
        raise provider._error(
            ProviderErrorKind.REQUEST_REJECTED, f"invalid response body: {exc}"
        ) from exc


def parse_segments(raw: Any) -> list[Segment] | None:
    """Normalize provider segments (objects or dicts) into Segment values."""
    if not raw:
        return None
    segments = []
    for item in raw:
        get = item.get if isinstance(item, dict) else lambda name, default=None, i=item: getattr(i, name, default)
        segments.append(
            Segment(
                start=float(get("start", 0.0) or 0.0),
                end=float(get("end", 0.0) or 0.0),
                text=str(get("text", "") or ""),
            )
        )
    return segments
