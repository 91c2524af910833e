"""Metadata parsing and XSD validation.

This module turns raw aggregate bytes into an lxml tree and checks it
against a reference schema. Both steps report failures as
``SchemaViolationError`` carrying the libxml2 error code.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from lxml import etree

from core.errors import LmdqConfigError, SchemaViolationError


def parse_metadata(raw_bytes: bytes) -> etree._ElementTree:
    """Parse aggregate bytes with entity expansion and network access disabled.

    Args:
        raw_bytes: Raw XML document.

    Returns:
        Parsed element tree.

    Raises:
        SchemaViolationError: If the bytes are not well-formed XML.
    """
    parser = etree.XMLParser(resolve_entities=False, no_network=True, remove_blank_text=False)
    try:
        root = etree.fromstring(raw_bytes, parser)
    except etree.XMLSyntaxError as error:
        raise SchemaViolationError(
            f"Document validation error {error.code}: {error.msg}. "
            "The feed is not well-formed XML; check for truncated downloads.",
            code=error.code,
        ) from error
    except ValueError as error:
        raise SchemaViolationError(f"Document validation error -1: {error}.") from error
    if root is None:
        raise SchemaViolationError("Document validation error -1: document is empty.")
    return root.getroottree()


@lru_cache(maxsize=8)
def load_schema(schema_path: str) -> etree.XMLSchema:
    """Load and cache an XSD schema.

    Args:
        schema_path: Path to the schema file.

    Returns:
        Compiled schema.

    Raises:
        LmdqConfigError: If the schema cannot be read or compiled.
    """
    schema_file = Path(schema_path)
    if not schema_file.exists():
        raise LmdqConfigError(
            f"Metadata schema not found at {schema_file}. Set LMDQ_SCHEMA_PATH to an XSD file."
        )
    try:
        return etree.XMLSchema(etree.parse(str(schema_file)))
    except (etree.XMLSyntaxError, etree.XMLSchemaParseError) as error:
        raise LmdqConfigError(
            f"Failed to load metadata schema {schema_file}: {error}. "
            "Point LMDQ_SCHEMA_PATH at a valid XSD."
        ) from error


def validate_schema(tree: etree._ElementTree, schema_path: Path) -> None:
    """Validate a parsed document against an XSD schema.

    Raises:
        SchemaViolationError: If the document violates the schema.
    """
    schema = load_schema(str(schema_path.resolve()))
    if schema.validate(tree):
        return
    first_error = next(iter(schema.error_log), None)
    code = first_error.type if first_error is not None else -1
    message = first_error.message if first_error is not None else "unknown schema error"
    raise SchemaViolationError(
        f"Document validation error {code}: {message} (schema {schema_path.name}).",
        code=code,
    )
