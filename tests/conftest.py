"""Pytest configuration for repository test runs."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest


def pytest_sessionstart() -> None:
    """Add src directory to sys.path for test imports."""
    project_root = Path(__file__).resolve().parent.parent
    src_path = project_root / "src"
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


@pytest.fixture(scope="session")
def signer():
    """Signing key whose fingerprint the tests trust."""
    from tests.signing import build_signer

    return build_signer("lmdq trusted signer")


@pytest.fixture(scope="session")
def other_signer():
    """Signing key nobody trusts."""
    from tests.signing import build_signer

    return build_signer("lmdq untrusted signer")
