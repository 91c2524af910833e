"""Aggregate validation: schema, signature, and trusted signer checks.

Checks run in a fixed order and stop at the first failure:

1. parse and schema-validate the raw bytes
2. locate exactly one signing certificate
3. derive the signer key fingerprint
4. verify the enveloped signature
5. compare the fingerprint with the trusted one

Schema validity alone never authenticates a feed; only steps 4 and 5 do.
"""

from __future__ import annotations

from pathlib import Path

from core.config import normalize_fingerprint
from core.errors import UntrustedSignerError
from core.logging_config import get_logger
from core.types import ValidatedMetadata
from metadata.schema import parse_metadata, validate_schema
from metadata.signature import (
    find_signing_certificate,
    key_fingerprint,
    load_certificate,
    verify_enveloped_signature,
)

_LOGGER = get_logger(__name__)


def validate_metadata(
    raw_bytes: bytes,
    schema_path: Path,
    expected_fingerprint: str,
) -> ValidatedMetadata:
    """Validate an aggregate and return its parsed, trusted form.

    Args:
        raw_bytes: Raw aggregate bytes as fetched.
        schema_path: XSD the document must satisfy.
        expected_fingerprint: Trusted signer key fingerprint.

    Returns:
        Parsed document together with the signer fingerprint.

    Raises:
        SchemaViolationError: If the bytes are malformed or violate the schema.
        NotSignedError: If no signing certificate is embedded.
        AmbiguousSignatureError: If more than one certificate is embedded.
        SignatureInvalidError: If the signature does not verify.
        DigestMismatchError: If signed content was altered.
        UntrustedSignerError: If a valid signature was made by another key.
    """
    tree = parse_metadata(raw_bytes)
    validate_schema(tree, schema_path)
    certificate = load_certificate(find_signing_certificate(tree))
    fingerprint = key_fingerprint(certificate)
    expected = normalize_fingerprint(expected_fingerprint)
    verify_enveloped_signature(tree, certificate, fingerprint, expected)
    if fingerprint != expected:
        raise UntrustedSignerError(
            f"Signature check failed. Signed by untrusted key, {fingerprint} = {expected}",
            computed_fingerprint=fingerprint,
            expected_fingerprint=expected,
        )
    _LOGGER.debug("metadata_validated", fingerprint=fingerprint, size=len(raw_bytes))
    return ValidatedMetadata(document=tree, fingerprint=fingerprint)


def metadata_fingerprint(raw_bytes: bytes) -> str:
    """Return the signer fingerprint of a document without verifying it.

    Raises:
        SchemaViolationError: If the bytes are not well-formed XML.
        NotSignedError: If no signing certificate is embedded.
        AmbiguousSignatureError: If more than one certificate is embedded.
    """
    tree = parse_metadata(raw_bytes)
    return key_fingerprint(load_certificate(find_signing_certificate(tree)))
