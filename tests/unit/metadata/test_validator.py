"""Unit tests for aggregate validation."""

from __future__ import annotations

import pytest
from lxml import etree

from core.constants import DEFAULT_SCHEMA_PATH
from core.errors import (
    AmbiguousSignatureError,
    DigestMismatchError,
    NotSignedError,
    SchemaViolationError,
    SignatureInvalidError,
    UntrustedSignerError,
)
from metadata.validator import metadata_fingerprint, validate_metadata
from tests.fixture_paths import fixture_path
from tests.signing import (
    add_second_certificate,
    aggregate,
    corrupt_signature_value,
    idp_entity,
    replace_digest_value,
    sign_metadata,
    sp_entity,
    tamper,
)


def _document() -> bytes:
    return aggregate(
        idp_entity("https://idp.example.org", "https://idp.example.org/sso"),
        sp_entity("https://sp.example.org", "https://sp.example.org/acs"),
    )


def test_validate_metadata_accepts_trusted_signature(signer) -> None:
    """A correctly signed document from the trusted key should validate."""
    signed = sign_metadata(_document(), signer)

    validated = validate_metadata(signed, DEFAULT_SCHEMA_PATH, signer.fingerprint)

    assert validated.fingerprint == signer.fingerprint


def test_validate_metadata_compares_fingerprints_case_insensitively(signer) -> None:
    """Upper-case configured fingerprints should still match."""
    signed = sign_metadata(_document(), signer)

    validated = validate_metadata(signed, DEFAULT_SCHEMA_PATH, signer.fingerprint.upper())

    assert validated.document.getroot().get("Name") == "urn:test:federation"


def test_validate_metadata_rejects_truncated_document(signer) -> None:
    """Truncated bytes should fail as a schema violation, not crash."""
    signed = sign_metadata(_document(), signer)

    with pytest.raises(SchemaViolationError) as error_info:
        validate_metadata(signed[:30], DEFAULT_SCHEMA_PATH, signer.fingerprint)

    assert error_info.value.code != 0


def test_validate_metadata_rejects_empty_document(signer) -> None:
    """Empty bytes should fail as a schema violation."""
    with pytest.raises(SchemaViolationError):
        validate_metadata(b"", DEFAULT_SCHEMA_PATH, signer.fingerprint)


def test_validate_metadata_reports_schema_error_code_for_wrong_schema(signer) -> None:
    """Validating against a schema for another namespace should fail with its code."""
    signed = sign_metadata(_document(), signer)
    wrong_schema = fixture_path("schemas/saml-protocol-only.xsd")

    with pytest.raises(SchemaViolationError) as error_info:
        validate_metadata(signed, wrong_schema, signer.fingerprint)

    assert error_info.value.code == etree.ErrorTypes.SCHEMAV_CVC_ELT_1


def test_validate_metadata_checks_schema_before_signature() -> None:
    """An unsigned document missing entityID should be reported as a schema violation."""
    document = aggregate('<md:EntityDescriptor><md:Organization/></md:EntityDescriptor>')

    with pytest.raises(SchemaViolationError):
        validate_metadata(document, DEFAULT_SCHEMA_PATH, "00")


def test_validate_metadata_rejects_unsigned_document(signer) -> None:
    """Documents without a signing certificate should be rejected."""
    with pytest.raises(NotSignedError):
        validate_metadata(_document(), DEFAULT_SCHEMA_PATH, signer.fingerprint)


def test_validate_metadata_rejects_multiple_certificates(signer) -> None:
    """More than one embedded certificate should be a hard failure."""
    signed = tamper(sign_metadata(_document(), signer), add_second_certificate)

    with pytest.raises(AmbiguousSignatureError):
        validate_metadata(signed, DEFAULT_SCHEMA_PATH, signer.fingerprint)


def test_validate_metadata_reports_digest_mismatch_with_real_fingerprint(signer) -> None:
    """An altered digest value should surface the computed fingerprint."""
    signed = tamper(sign_metadata(_document(), signer), replace_digest_value)

    with pytest.raises(DigestMismatchError) as error_info:
        validate_metadata(signed, DEFAULT_SCHEMA_PATH, signer.fingerprint)

    assert error_info.value.computed_fingerprint == signer.fingerprint


def test_validate_metadata_detects_content_changed_after_signing(signer) -> None:
    """Editing signed content should be reported as a digest mismatch."""
    signed = sign_metadata(_document(), signer)
    tampered = signed.replace(b"https://sp.example.org/acs", b"https://evil.example.org/acs")

    with pytest.raises(DigestMismatchError):
        validate_metadata(tampered, DEFAULT_SCHEMA_PATH, signer.fingerprint)


def test_validate_metadata_rejects_corrupted_signature_value(signer) -> None:
    """A bad signature value over intact content should not be a digest mismatch."""
    signed = tamper(sign_metadata(_document(), signer), corrupt_signature_value)

    with pytest.raises(SignatureInvalidError) as error_info:
        validate_metadata(signed, DEFAULT_SCHEMA_PATH, signer.fingerprint)

    assert not isinstance(error_info.value, DigestMismatchError)


def test_validate_metadata_rejects_reference_to_other_element(signer) -> None:
    """A signature that does not reference the root descriptor should be rejected."""

    def _rename_root_id(root: etree._Element) -> None:
        root.set("ID", "_renamed")

    signed = tamper(sign_metadata(_document(), signer), _rename_root_id)

    with pytest.raises(SignatureInvalidError):
        validate_metadata(signed, DEFAULT_SCHEMA_PATH, signer.fingerprint)


def test_validate_metadata_rejects_untrusted_signer(signer, other_signer) -> None:
    """A valid signature by another key should be rejected."""
    signed = sign_metadata(_document(), other_signer)

    with pytest.raises(UntrustedSignerError) as error_info:
        validate_metadata(signed, DEFAULT_SCHEMA_PATH, signer.fingerprint)

    assert error_info.value.computed_fingerprint == other_signer.fingerprint


def test_metadata_fingerprint_reads_embedded_certificate(signer) -> None:
    """Fingerprint helper should derive the signer fingerprint."""
    signed = sign_metadata(_document(), signer)

    assert metadata_fingerprint(signed) == signer.fingerprint
