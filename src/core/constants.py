"""Core constants used across lMDQ modules.

This module centralizes defaults, XML namespaces, and XPath expressions.
Keeping values here avoids magic literals in business logic.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_DATA_FOLDER_PREFIX = "lmdqdata_"
DEFAULT_SYMLINK_NAME = "lmdqdata"
DEFAULT_DISCOVERY_FILE_NAME = "wayf-interfed.discofeed.jsgz"
DISCOVERY_FOLDER_NAME = "discofeed"
DEFAULT_FETCH_TIMEOUT_SECONDS = 60.0
DEFAULT_DUPLICATE_POLICY = "overwrite"
SUPPORTED_DUPLICATE_POLICIES = ("overwrite", "warn", "error")
FEED_SEPARATOR = ";;"
FEED_FIELD_SEPARATOR = "::"
SNAPSHOT_DIR_MODE = 0o755
CONFIG_FILE_VERSION = 1

SCHEMAS_DIR = Path(__file__).resolve().parent.parent / "metadata" / "schemas"
DEFAULT_SCHEMA_PATH = SCHEMAS_DIR / "saml-metadata-lax.xsd"

MD_NAMESPACE = "urn:oasis:names:tc:SAML:2.0:metadata"
DS_NAMESPACE = "http://www.w3.org/2000/09/xmldsig#"
XML_NAMESPACES = {"md": MD_NAMESPACE, "ds": DS_NAMESPACE}

ENTITY_XPATH = "/md:EntityDescriptor|/md:EntitiesDescriptor/md:EntityDescriptor"
SIGNATURE_XPATH = "/md:EntitiesDescriptor/ds:Signature|/md:EntityDescriptor/ds:Signature"
CERTIFICATE_XPATH = (
    "/md:EntitiesDescriptor/ds:Signature/ds:KeyInfo/ds:X509Data/ds:X509Certificate"
    "|/md:EntityDescriptor/ds:Signature/ds:KeyInfo/ds:X509Data/ds:X509Certificate"
)
IDP_SSO_REDIRECT_LOCATION_XPATH = (
    "./md:IDPSSODescriptor/md:SingleSignOnService"
    "[@Binding='urn:oasis:names:tc:SAML:2.0:bindings:HTTP-Redirect']/@Location"
)
DEFAULT_INDEX_XPATHS = (IDP_SSO_REDIRECT_LOCATION_XPATH,)

TRANSFORM_ENVELOPED = "http://www.w3.org/2000/09/xmldsig#enveloped-signature"
TRANSFORM_C14N = "http://www.w3.org/TR/2001/REC-xml-c14n-20010315"
TRANSFORM_C14N_COMMENTS = "http://www.w3.org/TR/2001/REC-xml-c14n-20010315#WithComments"
TRANSFORM_EXC_C14N = "http://www.w3.org/2001/10/xml-exc-c14n#"
TRANSFORM_EXC_C14N_COMMENTS = "http://www.w3.org/2001/10/xml-exc-c14n#WithComments"
DIGEST_ALGORITHMS = {
    "http://www.w3.org/2000/09/xmldsig#sha1": "sha1",
    "http://www.w3.org/2001/04/xmldsig-more#sha224": "sha224",
    "http://www.w3.org/2001/04/xmlenc#sha256": "sha256",
    "http://www.w3.org/2001/04/xmldsig-more#sha384": "sha384",
    "http://www.w3.org/2001/04/xmlenc#sha512": "sha512",
}
