"""lMDQ exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each pipeline stage raises a specific error type so the failing stage
and feed can be reported without inspecting messages.
"""

from __future__ import annotations


class LmdqError(Exception):
    """Base exception for all lMDQ failures."""

    stage = "run"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.feed_name: str | None = None

    def for_feed(self, feed_name: str) -> None:
        """Attach the name of the feed being processed when the error occurred."""
        self.feed_name = feed_name


class LmdqConfigError(LmdqError):
    """Raised for invalid or missing runtime configuration."""

    stage = "config"


class FeedFetchError(LmdqError):
    """Raised when feed bytes cannot be retrieved."""

    stage = "fetch"


class FeedStatusError(FeedFetchError):
    """Raised when a remote feed answers with a non-success status."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class MetadataValidationError(LmdqError):
    """Base class for schema, signature, and trust failures."""

    stage = "validate"


class SchemaViolationError(MetadataValidationError):
    """Raised when a document is not well-formed or violates the schema.

    Attributes:
        code: libxml2 error code of the first reported problem, ``-1``
            when the parser did not report one.
    """

    def __init__(self, message: str, code: int = -1) -> None:
        super().__init__(message)
        self.code = code


class NotSignedError(MetadataValidationError):
    """Raised when no signing certificate is embedded in the document."""


class AmbiguousSignatureError(MetadataValidationError):
    """Raised when more than one signing certificate is embedded."""


class SignatureInvalidError(MetadataValidationError):
    """Raised when the enveloped signature does not verify.

    Attributes:
        computed_fingerprint: Fingerprint derived from the embedded certificate.
        expected_fingerprint: Fingerprint the caller trusts.
    """

    def __init__(
        self,
        message: str,
        computed_fingerprint: str | None = None,
        expected_fingerprint: str | None = None,
    ) -> None:
        super().__init__(message)
        self.computed_fingerprint = computed_fingerprint
        self.expected_fingerprint = expected_fingerprint


class DigestMismatchError(SignatureInvalidError):
    """Raised when a referenced content digest disagrees with the signed value."""


class UntrustedSignerError(MetadataValidationError):
    """Raised when a valid signature was made by an unexpected key."""

    def __init__(self, message: str, computed_fingerprint: str, expected_fingerprint: str) -> None:
        super().__init__(message)
        self.computed_fingerprint = computed_fingerprint
        self.expected_fingerprint = expected_fingerprint


class IndexingError(LmdqError):
    """Raised when entity files cannot be derived or written."""

    stage = "index"


class DuplicateEntityError(IndexingError):
    """Raised when a feed repeats an entityID under the ``error`` policy."""


class PublishError(LmdqError):
    """Raised when a snapshot cannot be created or promoted.

    Failures while swapping the live link are the highest-severity class:
    they risk leaving consumers without a live dataset.
    """

    stage = "publish"
