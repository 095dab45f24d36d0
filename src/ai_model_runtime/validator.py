# ai_model_runtime/validator.py
"""
ArtifactValidator - integrity checks for model files before loading.

Checks run in order and stop at the first failure:

1. exists and readable          -> NOT_FOUND
2. at least the format minimum  -> TOO_SMALL
3. header matches the format    -> FORMAT_MISMATCH   (optional)
4. size within 1% of expected   -> SIZE_MISMATCH     (optional)
5. SHA-256 matches              -> CHECKSUM_MISMATCH (optional)
6. throwaway backend load       -> LOAD_TEST_FAILED  (optional)

Failures are returned as values; the registry turns them into
ArtifactInvalid.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import os
import struct
from collections.abc import Mapping
from pathlib import Path

from ai_model_runtime.delegates import ArtifactSource, Backend, BackendOptions
from ai_model_runtime.models.artifact import ArtifactMetadata, ModelArtifact, ValidationResult
from ai_model_runtime.models.enums import (
    EXTENSION_FORMATS,
    MIN_ARTIFACT_BYTES,
    ArtifactFormat,
    ValidationFailure,
)

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192
HEADER_BYTES = 8
GGUF_HEADER_BYTES = 24
SIZE_TOLERANCE = 0.01

GGUF_MAGIC = b"GGUF"
GGML_MAGICS = (b"ggml", b"lmgg", b"tjgg")
TFLITE_IDENTIFIER = b"TFL3"
ONNX_FIRST_BYTE = 0x08  # protobuf tag: field 1 (ir_version), varint


# =============================================================================
# Format detection
# =============================================================================


def format_from_extension(path: str | Path) -> ArtifactFormat:
    return EXTENSION_FORMATS.get(Path(path).suffix.lower(), ArtifactFormat.UNKNOWN)


def sniff_format(header: bytes) -> ArtifactFormat:
    """Identify a format from the first bytes of a file."""
    if header[:4] == GGUF_MAGIC:
        return ArtifactFormat.GGUF
    if header[:4] in GGML_MAGICS:
        return ArtifactFormat.GGML
    if header[4:8] == TFLITE_IDENTIFIER:
        return ArtifactFormat.TFLITE
    if header[:1] and header[0] == ONNX_FIRST_BYTE:
        return ArtifactFormat.ONNX
    return ArtifactFormat.UNKNOWN


def read_header(path: str | Path, size: int = HEADER_BYTES) -> bytes:
    with open(path, "rb") as f:
        return f.read(size)


def detect_format(path: str | Path) -> ArtifactFormat:
    """Extension first, then header."""
    fmt = format_from_extension(path)
    if fmt != ArtifactFormat.UNKNOWN:
        return fmt
    return sniff_format(read_header(path))


def sha256_file(path: str | Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        while chunk := f.read(CHUNK_SIZE):
            digest.update(chunk)
    return digest.hexdigest()


def read_gguf_header(header: bytes) -> tuple[int, int, int] | None:
    """Return (version, tensor_count, metadata_count) from a GGUF header, or None."""
    if len(header) < 12 or header[:4] != GGUF_MAGIC:
        return None
    (version,) = struct.unpack_from("<I", header, 4)
    # Version 1 used 32-bit counts; later versions use 64-bit
    if version == 1:
        tensor_count, metadata_count = struct.unpack_from("<II", header, 8)
    elif len(header) >= GGUF_HEADER_BYTES:
        tensor_count, metadata_count = struct.unpack_from("<QQ", header, 8)
    else:
        return None
    return version, tensor_count, metadata_count


def read_metadata_sync(path: Path) -> ArtifactMetadata:
    header = read_header(path, GGUF_HEADER_BYTES)
    metadata = ArtifactMetadata(
        file_name=path.name,
        size_bytes=path.stat().st_size,
        format=detect_format(path),
    )
    gguf = read_gguf_header(header)
    if gguf is not None:
        version, tensor_count, metadata_count = gguf
        metadata = metadata.model_copy(
            update={"version": version, "tensor_count": tensor_count, "metadata_count": metadata_count}
        )
    return metadata


# =============================================================================
# Validator
# =============================================================================


class ArtifactValidator:
    """
    Validates model artifacts.

    The backend is only needed for load tests. File reads and hashing run
    in a worker thread.
    """

    def __init__(
        self,
        backend: Backend | None = None,
        min_sizes: dict[ArtifactFormat, int] | None = None,
    ) -> None:
        self._backend = backend
        self._min_sizes = dict(MIN_ARTIFACT_BYTES)
        if min_sizes:
            self._min_sizes.update(min_sizes)

    async def validate(
        self,
        path: str | Path,
        declared_format: ArtifactFormat | None = None,
        expected_size: int | None = None,
        sha256: str | None = None,
        check_header: bool = True,
        perform_load_test: bool = False,
    ) -> ValidationResult:
        path = Path(path)
        result = await asyncio.to_thread(
            self._check_file, path, declared_format, expected_size, sha256, check_header
        )
        if not result.ok:
            logger.warning(f"Artifact {path.name} rejected: {result.failure.value} {result.detail}")
            return result

        if perform_load_test:
            failure = await self._load_test(path)
            if failure is not None:
                logger.warning(f"Artifact {path.name} failed load test: {failure.detail}")
                return failure

        logger.debug(f"Artifact {path.name} validated ({result.artifact.observed_size} bytes)")
        return result

    async def quick_validate(self, path: str | Path, sha256: str | None = None) -> bool:
        """Existence, size floor and optional checksum; no header check or load test."""
        result = await self.validate(path, sha256=sha256, check_header=False)
        return result.ok

    async def needs_update(self, path: str | Path, latest_sha256: str) -> bool:
        """True when the file is missing or its checksum differs from ``latest_sha256``."""
        path = Path(path)
        if not path.is_file():
            return True
        current = await asyncio.to_thread(sha256_file, path)
        return current.lower() != latest_sha256.lower()

    async def validate_many(
        self,
        sources: Mapping[str, ArtifactSource | Path | str],
        perform_load_test: bool = False,
    ) -> dict[str, ValidationResult]:
        """Validate several artifacts concurrently, keyed by the caller's names."""
        names = list(sources)
        checks = []
        for name in names:
            source = sources[name]
            if not isinstance(source, ArtifactSource):
                source = ArtifactSource(path=Path(source))
            checks.append(
                self.validate(
                    source.path,
                    declared_format=source.format,
                    expected_size=source.expected_size,
                    sha256=source.sha256,
                    perform_load_test=perform_load_test,
                )
            )
        results = await asyncio.gather(*checks)
        return dict(zip(names, results))

    async def read_metadata(self, path: str | Path) -> ArtifactMetadata | None:
        """Size, format and (for GGUF) header counts, or None if the file is missing or unreadable."""
        path = Path(path)
        if not path.is_file():
            return None
        try:
            return await asyncio.to_thread(read_metadata_sync, path)
        except OSError as e:
            logger.warning(f"Could not read metadata from {path.name}: {e}")
            return None

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    def _check_file(
        self,
        path: Path,
        declared_format: ArtifactFormat | None,
        expected_size: int | None,
        sha256: str | None,
        check_header: bool,
    ) -> ValidationResult:
        if not path.is_file() or not os.access(path, os.R_OK):
            return ValidationResult.failed(ValidationFailure.NOT_FOUND, f"{path} does not exist or is unreadable")

        observed_size = path.stat().st_size
        header = read_header(path)
        expected_format = declared_format or format_from_extension(path)
        sniffed = sniff_format(header)
        fmt = expected_format if expected_format != ArtifactFormat.UNKNOWN else sniffed

        minimum = max(self._min_sizes.get(fmt, 1), 1)
        if observed_size < minimum:
            return ValidationResult.failed(
                ValidationFailure.TOO_SMALL,
                f"{observed_size} bytes, {fmt.value} needs at least {minimum}",
            )

        if check_header and expected_format != ArtifactFormat.UNKNOWN and sniffed != expected_format:
            return ValidationResult.failed(
                ValidationFailure.FORMAT_MISMATCH,
                f"expected {expected_format.value}, header looks like {sniffed.value}",
            )

        if expected_size is not None:
            tolerance = expected_size * SIZE_TOLERANCE
            if abs(observed_size - expected_size) > tolerance:
                return ValidationResult.failed(
                    ValidationFailure.SIZE_MISMATCH,
                    f"expected {expected_size} bytes, found {observed_size}",
                )

        checksum: str | None = None
        if sha256 is not None:
            checksum = sha256_file(path)
            if checksum.lower() != sha256.lower():
                return ValidationResult.failed(
                    ValidationFailure.CHECKSUM_MISMATCH,
                    f"expected {sha256}, got {checksum}",
                )

        return ValidationResult.success(
            ModelArtifact(
                path=path,
                format=fmt,
                declared_size=expected_size,
                observed_size=observed_size,
                sha256=checksum,
            )
        )

    async def _load_test(self, path: Path) -> ValidationResult | None:
        if self._backend is None:
            return ValidationResult.failed(ValidationFailure.LOAD_TEST_FAILED, "no backend configured for load test")

        backend = self._backend

        def _load_and_release() -> None:
            handle = backend.load(path, BackendOptions(threads=1, use_accelerator=False))
            backend.unload(handle)

        try:
            await asyncio.to_thread(_load_and_release)
        except Exception as e:
            return ValidationResult.failed(ValidationFailure.LOAD_TEST_FAILED, str(e))
        return None
