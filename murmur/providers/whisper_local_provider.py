"""
On-device transcription with the whisper.cpp command-line binary.

The binary and the ggml model weights are downloaded on first use into the
application data directory and reused afterwards.
"""

from __future__ import annotations

import asyncio
import logging
import os
import platform
import sys
import tempfile
import time
import zipfile
from pathlib import Path
from typing import Callable

import httpx

from murmur.errors import ProviderError, ProviderErrorKind
from murmur.providers.base import ProviderClient
from murmur.types import TranscriptionResult

logger = logging.getLogger(__name__)

WHISPER_CPP_VERSION = "v1.7.2"
RELEASE_URL = f"https://github.com/ggerganov/whisper.cpp/releases/download/{WHISPER_CPP_VERSION}"
MODEL_URL = "https://huggingface.co/ggerganov/whisper.cpp/resolve/main/ggml-{model}.bin"

WHISPER_MODELS = ("tiny", "base", "small", "medium", "large-v3-turbo")
DEFAULT_MODEL = "base"

BINARY_NAMES = ("whisper-cli", "main")
DOWNLOAD_CHUNK_SIZE = 1 << 16
DOWNLOAD_TIMEOUT_SECONDS = 30.0


def binary_archive_url(system: str | None = None, machine: str | None = None) -> str:
    """Release archive holding the whisper.cpp binary for this platform."""
    system = system or sys.platform
    machine = (machine or platform.machine()).lower()
    if system.startswith("win"):
        name = "whisper-bin-Win32.zip"
    elif system == "darwin":
        name = "whisper-bin-macos-arm64.zip" if machine in ("arm64", "aarch64") else "whisper-bin-macos-x64.zip"
    else:
        name = "whisper-bin-linux-x64.zip"
    return f"{RELEASE_URL}/{name}"


class WhisperLocalProvider(ProviderClient):
    provider_id = "whisper-local"
    display_name = "Local Whisper"
    requires_key = False

    def __init__(
        self,
        data_dir: Path,
        transport: httpx.AsyncBaseTransport | None = None,
        on_progress: Callable[[str, float], None] | None = None,
    ) -> None:
        super().__init__()
        self.whisper_dir = Path(data_dir) / "whisper"
        self.bin_dir = self.whisper_dir / "bin"
        self.models_dir = self.whisper_dir / "models"
        self._transport = transport
        self._on_progress = on_progress
        self._provision_lock = asyncio.Lock()

    def model_path(self, model: str) -> Path:
        return self.models_dir / f"ggml-{model}.bin"

    def is_model_available(self, model: str) -> bool:
        return self.model_path(model).is_file()

    def find_binary(self) -> Path | None:
        suffix = ".exe" if sys.platform.startswith("win") else ""
        if not self.bin_dir.is_dir():
            return None
        for name in BINARY_NAMES:
            for candidate in sorted(self.bin_dir.rglob(name + suffix)):
                if candidate.is_file():
                    return candidate
        return None

    async def transcribe(
        self, audio: bytes, model: str, language: str | None = None
    ) -> TranscriptionResult:
        model = model or DEFAULT_MODEL
        if model not in WHISPER_MODELS:
            raise self._error(ProviderErrorKind.UNSUPPORTED_MODEL, f"unknown model {model!r}")

        async with self._provision_lock:
            binary = await self.ensure_binary()
            model_path = await self.ensure_model(model)

        started = time.monotonic()
        fd, audio_path = tempfile.mkstemp(suffix=".wav", prefix="murmur_")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(audio)
            text = await self._run(binary, model_path, audio_path, language)
        finally:
            _cleanup_temp_file(audio_path)

        return TranscriptionResult(
            text=text.strip(),
            duration_seconds=time.monotonic() - started,
            language=language,
        )

    async def _run(
        self, binary: Path, model_path: Path, audio_path: str, language: str | None
    ) -> str:
        args = [
            "-m", str(model_path),
            "-f", audio_path,
            "-nt",
            "-np",
            "--no-fallback",
        ]
        if language and language != "auto":
            args += ["-l", language]

        logger.debug("Running %s %s", binary, " ".join(args))
        try:
            proc = await asyncio.create_subprocess_exec(
                str(binary),
                *args,
                cwd=str(self.whisper_dir),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise self._error(ProviderErrorKind.PROCESS_FAILED, f"cannot start whisper: {exc}") from exc

        stdout, stderr = await proc.communicate()
        if proc.returncode != 0:
            detail = stderr.decode(errors="replace").strip()[-500:]
            logger.error("whisper exited with code %s: %s", proc.returncode, detail)
            raise self._error(
                ProviderErrorKind.PROCESS_FAILED,
                f"whisper exited with code {proc.returncode}: {detail}",
            )
        return stdout.decode(errors="replace")

    async def ensure_binary(self) -> Path:
        if (binary := self.find_binary()) is not None:
            return binary

        url = binary_archive_url()
        archive = self.whisper_dir / "whisper-bin.zip"
        print("⬇️  Downloading whisper.cpp binary...")
        await self.download_file(url, archive, label="whisper.cpp")

        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(self.bin_dir)
        except (zipfile.BadZipFile, OSError) as exc:
            raise self._error(ProviderErrorKind.SETUP_FAILED, f"cannot extract {archive.name}: {exc}") from exc
        finally:
            archive.unlink(missing_ok=True)

        binary = self.find_binary()
        if binary is None:
            raise self._error(ProviderErrorKind.SETUP_FAILED, "whisper binary missing from release archive")
        if not sys.platform.startswith("win"):
            binary.chmod(0o755)
        logger.info("whisper.cpp binary ready at %s", binary)
        return binary

    async def ensure_model(self, model: str) -> Path:
        path = self.model_path(model)
        if not path.is_file():
            print(f"⬇️  Downloading Whisper model '{model}'...")
            await self.download_file(MODEL_URL.format(model=model), path, label=model)
        return path

    async def download_file(self, url: str, dest: Path, label: str = "") -> None:
        """
        Stream ``url`` into ``dest``.

        The body is written to a ``.part`` sibling that only replaces ``dest``
        once complete, so an interrupted download never leaves a truncated
        file behind.

        Raises:
            ProviderError: ``setupFailed`` on any HTTP or I/O failure.
        """
        dest.parent.mkdir(parents=True, exist_ok=True)
        part = dest.with_name(dest.name + ".part")
        logger.info("Downloading %s to %s", url, dest)
        try:
            async with httpx.AsyncClient(
                follow_redirects=True,
                timeout=DOWNLOAD_TIMEOUT_SECONDS,
                transport=self._transport,
            ) as client:
                async with client.stream("GET", url) as response:
                    if response.status_code != 200:
                        raise self._error(
                            ProviderErrorKind.SETUP_FAILED,
                            f"download of {url} failed with HTTP {response.status_code}",
                        )
                    total = int(response.headers.get("content-length") or 0)
                    received = 0
                    logged_step = 0
                    with open(part, "wb") as f:
                        async for chunk in response.aiter_bytes(DOWNLOAD_CHUNK_SIZE):
                            f.write(chunk)
                            received += len(chunk)
                            if not total:
                                continue
                            fraction = received / total
                            if self._on_progress is not None:
                                self._on_progress(label, fraction)
                            if (step := int(fraction * 10)) > logged_step:
                                logged_step = step
                                logger.info("%s: %d%%", label or dest.name, step * 10)
            os.replace(part, dest)
        except (httpx.HTTPError, OSError) as exc:
            raise self._error(ProviderErrorKind.SETUP_FAILED, f"download of {url} failed: {exc}") from exc
        finally:
            # also runs on cancellation
            part.unlink(missing_ok=True)

        logger.info("Downloaded %s (%d bytes)", dest.name, received)


def _cleanup_temp_file(path: str) -> None:
    try:
        os.remove(path)
    except OSError as e:
        logger.warning("Failed to remove temp file %s: %s", path, e)
