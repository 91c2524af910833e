"""Signature material lookup and enveloped signature verification.

This module locates the signing certificate in an aggregate, derives the
signer key fingerprint, and verifies the enveloped XML signature with
xmlsec. When verification fails, referenced digests are recomputed with
lxml canonicalization so digest tampering is reported separately from a
bad signature value.
"""

from __future__ import annotations

import base64
import binascii
import copy
import hashlib
from typing import Sequence

import xmlsec
from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from cryptography.hazmat.primitives.serialization import Encoding
from lxml import etree

from core.constants import (
    CERTIFICATE_XPATH,
    DIGEST_ALGORITHMS,
    DS_NAMESPACE,
    SIGNATURE_XPATH,
    TRANSFORM_C14N,
    TRANSFORM_C14N_COMMENTS,
    TRANSFORM_ENVELOPED,
    TRANSFORM_EXC_C14N,
    TRANSFORM_EXC_C14N_COMMENTS,
    XML_NAMESPACES,
)
from core.errors import (
    AmbiguousSignatureError,
    DigestMismatchError,
    NotSignedError,
    SignatureInvalidError,
)

_DS = f"{{{DS_NAMESPACE}}}"
_EXC_C14N_PREFIX_LIST = "{http://www.w3.org/2001/10/xml-exc-c14n#}InclusiveNamespaces"


def find_signing_certificate(tree: etree._ElementTree) -> str:
    """Return the base64 text of the single embedded signing certificate.

    Raises:
        NotSignedError: If no certificate is embedded.
        AmbiguousSignatureError: If more than one certificate or signature is found.
    """
    certificates = tree.xpath(CERTIFICATE_XPATH, namespaces=XML_NAMESPACES)
    if not certificates:
        raise NotSignedError(
            "Metadata not signed: no X509Certificate found in the top-level signature."
        )
    if len(certificates) > 1:
        raise AmbiguousSignatureError(
            f"Metadata signature is ambiguous: found {len(certificates)} signing certificates, "
            "expected exactly one."
        )
    certificate_text = "".join((certificates[0].text or "").split())
    if not certificate_text:
        raise NotSignedError("Metadata not signed: the X509Certificate element is empty.")
    return certificate_text


def load_certificate(certificate_text: str) -> x509.Certificate:
    """Decode a base64 DER certificate.

    Raises:
        SignatureInvalidError: If the certificate cannot be decoded.
    """
    try:
        return x509.load_der_x509_certificate(base64.b64decode(certificate_text, validate=True))
    except (binascii.Error, ValueError) as error:
        raise SignatureInvalidError(
            f"Signing certificate cannot be decoded: {error}."
        ) from error


def key_fingerprint(certificate: x509.Certificate) -> str:
    """Derive the signer fingerprint from the certificate's RSA modulus.

    The fingerprint is the SHA-1 hex digest of ``Modulus=<HEX>\\n``, the
    line ``openssl x509 -noout -modulus`` prints for the certificate.

    Raises:
        SignatureInvalidError: If the certificate does not carry an RSA key.
    """
    public_key = certificate.public_key()
    if not isinstance(public_key, RSAPublicKey):
        raise SignatureInvalidError(
            f"Signing certificate carries a {type(public_key).__name__}; "
            "only RSA keys have a modulus fingerprint."
        )
    modulus_line = f"Modulus={public_key.public_numbers().n:X}\n"
    return hashlib.sha1(modulus_line.encode("ascii")).hexdigest()


def verify_enveloped_signature(
    tree: etree._ElementTree,
    certificate: x509.Certificate,
    computed_fingerprint: str,
    expected_fingerprint: str,
) -> None:
    """Verify the top-level enveloped signature with the embedded certificate.

    Args:
        tree: Parsed aggregate.
        certificate: Certificate found in the signature's key info.
        computed_fingerprint: Fingerprint of the certificate, for error context.
        expected_fingerprint: Trusted fingerprint, for error context.

    Raises:
        DigestMismatchError: If a referenced content digest does not match.
        SignatureInvalidError: If the signature does not cover the document
            or does not verify.
    """
    root = tree.getroot()
    signature_node = _single_signature(tree)
    reference = _single_reference(signature_node, computed_fingerprint, expected_fingerprint)
    _check_reference_covers_root(root, reference, computed_fingerprint, expected_fingerprint)
    xmlsec.tree.add_ids(root, ["ID"])
    context = xmlsec.SignatureContext()
    try:
        context.key = xmlsec.Key.from_memory(
            certificate.public_bytes(Encoding.PEM), xmlsec.constants.KeyDataFormatCertPem
        )
        context.verify(signature_node)
    except xmlsec.Error as error:
        if _digest_mismatch(root, reference):
            raise DigestMismatchError(
                "Signature check failed. Signature digest mismatch, "
                f"{computed_fingerprint} = {expected_fingerprint}",
                computed_fingerprint=computed_fingerprint,
                expected_fingerprint=expected_fingerprint,
            ) from error
        raise SignatureInvalidError(
            f"Signature check failed. {error}, {computed_fingerprint} = {expected_fingerprint}",
            computed_fingerprint=computed_fingerprint,
            expected_fingerprint=expected_fingerprint,
        ) from error


def compute_reference_digest(root: etree._Element, reference: etree._Element) -> str | None:
    """Recompute the base64 digest of a reference that targets ``root``.

    Returns:
        Base64 digest, or ``None`` when a transform or digest method is unsupported.
    """
    digest_method = reference.find(f"{_DS}DigestMethod")
    if digest_method is None:
        return None
    algorithm = DIGEST_ALGORITHMS.get(digest_method.get("Algorithm", ""))
    if algorithm is None:
        return None
    content = _apply_transforms(root, reference.findall(f"{_DS}Transforms/{_DS}Transform"))
    if content is None:
        return None
    return base64.b64encode(hashlib.new(algorithm, content).digest()).decode("ascii")


def _single_signature(tree: etree._ElementTree) -> etree._Element:
    signatures = tree.xpath(SIGNATURE_XPATH, namespaces=XML_NAMESPACES)
    if len(signatures) > 1:
        raise AmbiguousSignatureError(
            f"Metadata signature is ambiguous: found {len(signatures)} top-level signatures."
        )
    if not signatures:
        raise NotSignedError("Metadata not signed: no top-level Signature element.")
    return signatures[0]


def _single_reference(
    signature_node: etree._Element, computed_fingerprint: str, expected_fingerprint: str
) -> etree._Element:
    references = signature_node.findall(f"{_DS}SignedInfo/{_DS}Reference")
    if len(references) != 1:
        raise SignatureInvalidError(
            f"Signature check failed. Expected one signed reference, found {len(references)}.",
            computed_fingerprint=computed_fingerprint,
            expected_fingerprint=expected_fingerprint,
        )
    return references[0]


def _check_reference_covers_root(
    root: etree._Element,
    reference: etree._Element,
    computed_fingerprint: str,
    expected_fingerprint: str,
) -> None:
    uri = reference.get("URI", "")
    root_id = root.get("ID")
    if uri == "" or (root_id and uri == f"#{root_id}"):
        return
    raise SignatureInvalidError(
        f"Signature check failed. Reference '{uri}' does not cover the signed descriptor.",
        computed_fingerprint=computed_fingerprint,
        expected_fingerprint=expected_fingerprint,
    )


def _digest_mismatch(root: etree._Element, reference: etree._Element) -> bool:
    digest_value = reference.find(f"{_DS}DigestValue")
    if digest_value is None:
        return False
    computed = compute_reference_digest(root, reference)
    if computed is None:
        return False
    return computed != "".join((digest_value.text or "").split())


def _apply_transforms(root: etree._Element, transforms: Sequence[etree._Element]) -> bytes | None:
    content = copy.deepcopy(root)
    exclusive = False
    prefixes: list[str] = []
    for transform in transforms:
        algorithm = transform.get("Algorithm")
        if algorithm == TRANSFORM_ENVELOPED:
            _remove_signatures(content)
        elif algorithm in (TRANSFORM_EXC_C14N, TRANSFORM_EXC_C14N_COMMENTS):
            exclusive = True
            prefix_list = transform.find(_EXC_C14N_PREFIX_LIST)
            if prefix_list is not None:
                prefixes = [
                    prefix
                    for prefix in prefix_list.get("PrefixList", "").split()
                    if prefix != "#default"
                ]
        elif algorithm in (TRANSFORM_C14N, TRANSFORM_C14N_COMMENTS):
            exclusive = False
        else:
            return None
    # Same-document references drop comments regardless of the c14n variant.
    return etree.tostring(
        content,
        method="c14n",
        exclusive=exclusive,
        with_comments=False,
        inclusive_ns_prefixes=prefixes or None,
    )


def _remove_signatures(element: etree._Element) -> None:
    for signature in element.findall(f"{_DS}Signature"):
        previous = signature.getprevious()
        if signature.tail:
            if previous is not None:
                previous.tail = (previous.tail or "") + signature.tail
            else:
                element.text = (element.text or "") + signature.tail
        element.remove(signature)
