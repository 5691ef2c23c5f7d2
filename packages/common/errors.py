"""
Exception hierarchy for the AI transform sync.

- MappingGenerationError: field mapping could not be derived (no fallback value)
- CacheCorruptError: persisted transform cache unreadable (never reset silently)
- TransformError: a single product's transform failed (scoped to that product)
- GenerationError: no text-generation provider produced a usable response
"""
from datetime import datetime, timezone
from typing import Any, Optional


class SyncError(Exception):
    """
    Base exception for all sync errors.

    Attributes:
        code: Error code (e.g., "TRANSFORM_FAILED")
        message: Human-readable message
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class GenerationError(SyncError):
    """Text generation failed on every configured provider."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="GENERATION_FAILED",
            message=message,
            details=details
        )


class MappingGenerationError(SyncError):
    """Field mapping could not be loaded or generated."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="MAPPING_GENERATION_FAILED",
            message=message,
            details=details
        )


class CacheCorruptError(SyncError):
    """Persisted transform cache is not valid structured data."""

    def __init__(self, path: str, reason: str):
        super().__init__(
            code="CACHE_CORRUPT",
            message=f"Transform cache at {path} is unreadable: {reason}",
            details={"path": path, "reason": reason}
        )


class TransformError(SyncError):
    """Transforming one source product failed."""

    def __init__(self, identity: str, reason: str):
        self.identity = identity
        super().__init__(
            code="TRANSFORM_FAILED",
            message=f"Transform failed for {identity}: {reason}",
            details={"identity": identity, "reason": reason}
        )
